import time

import pytest

from conftest import _b64, make_token
from expense_client.auth.tokens import decode_credential
from expense_client.models.user import Role
from expense_client.utils.exceptions import MalformedCredential


def test_decode_reads_claims():
    token = make_token(sub="alice", user_id=7, roles=["ROLE_MANAGER", "ROLE_EMPLOYEE"], email="alice@example.com")
    credential = decode_credential(token)

    assert credential.subject == "alice"
    assert credential.user_id == 7
    assert credential.claims.roles == frozenset({Role.MANAGER, Role.EMPLOYEE})
    assert credential.claims.email == "alice@example.com"
    assert not credential.is_expired()


def test_user_id_may_be_a_digit_string():
    assert decode_credential(make_token(user_id="12")).user_id == 12


def test_expired_claim_is_reported():
    credential = decode_credential(make_token(exp_in=-60))
    assert credential.is_expired()
    assert credential.expires_at is not None


def test_missing_expiry_never_expires():
    credential = decode_credential(make_token(exp_in=None))
    assert credential.expires_at is None
    assert not credential.is_expired(now=time.time() + 10 ** 9)


def test_unknown_roles_are_ignored():
    credential = decode_credential(make_token(roles=["ROLE_MANAGER", "ROLE_JANITOR"]))
    assert credential.claims.roles == frozenset({Role.MANAGER})


def test_to_user_keeps_role_order_stable():
    credential = decode_credential(make_token(roles=["ROLE_ADMIN", "ROLE_EMPLOYEE"]))
    user = credential.to_user(email="a@example.com")
    assert user.roles == [Role.EMPLOYEE, Role.ADMIN]
    assert user.email == "a@example.com"
    assert user.username == "alice"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "   ",
        "not-a-jwt",
        "a.b",
        "header..sig",
        "header.!!!notbase64!!!.sig",
        f"h.{_b64({'userId': 1})}.s",
        f"h.{_b64({'sub': 'alice'})}.s",
        f"h.{_b64({'sub': 'alice', 'userId': True})}.s",
        f"h.{_b64({'sub': 'alice', 'userId': 'abc'})}.s",
        f"h.{_b64({'sub': 'alice', 'userId': 1, 'exp': 'tomorrow'})}.s",
        f"h.{_b64({'sub': 'alice', 'userId': 1, 'roles': 'ROLE_ADMIN'})}.s",
    ],
)
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(MalformedCredential):
        decode_credential(token)


def test_payload_must_be_an_object():
    import base64

    segment = base64.urlsafe_b64encode(b"[1, 2]").rstrip(b"=").decode()
    with pytest.raises(MalformedCredential):
        decode_credential(f"h.{segment}.s")
