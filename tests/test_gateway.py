import pytest
import requests

from conftest import API_BASE, make_token
from expense_client.api.gateway import HttpGateway
from expense_client.core.navigation import Navigator
from expense_client.utils.exceptions import (
    AuthorizationFailure,
    ForbiddenAction,
    NotFound,
    StaleResponse,
    TransportFailure,
    ValidationError,
)


@pytest.fixture
def navigator():
    return Navigator(initial_route="/expenses")


@pytest.fixture
def gateway(session, http, navigator):
    session.hydrate()
    return HttpGateway(API_BASE, session, navigator=navigator, http=http)


def test_bearer_header_is_attached(gateway, session, backend):
    token = make_token()
    session.validate_and_adopt(token)
    backend.add("GET", "/users/me", (200, {"id": 1, "username": "alice"}))

    gateway.get_json("/users/me")

    assert backend.calls[-1].headers["Authorization"] == f"Bearer {token}"


def test_no_header_when_signed_out(gateway, backend):
    backend.add("POST", "/auth/login", (200, {"accessToken": "x"}))
    gateway.post_json("/auth/login", {"username": "a", "password": "b"})
    assert "Authorization" not in backend.calls[-1].headers


def test_unauthorized_tears_down_exactly_once(gateway, session, backend, navigator, store):
    session.validate_and_adopt(make_token())
    backend.add("GET", "/expenses/my", (401, {"message": "Token expired"}))
    events = []
    original_logout = session.logout

    def counting_logout():
        events.append("logout")
        return original_logout()

    session.logout = counting_logout

    with pytest.raises(AuthorizationFailure) as exc:
        gateway.get_json("/expenses/my")

    assert str(exc.value) == "Token expired"
    assert events == ["logout"]
    assert not session.is_authenticated
    assert store.is_empty()
    assert navigator.current_route == "/login"


def test_unauthorized_on_login_page_does_not_redirect(session, http, backend):
    navigator = Navigator(initial_route="/login?error=oauth_failed")
    gateway = HttpGateway(API_BASE, session, navigator=navigator, http=http)
    backend.add("POST", "/auth/login", (401, {"message": "Bad credentials"}))

    with pytest.raises(AuthorizationFailure):
        gateway.post_json("/auth/login", {"username": "a", "password": "b"})

    assert navigator.history == ["/login?error=oauth_failed"]


def test_stale_unauthorized_keeps_newer_session(gateway, session, backend, navigator):
    old = make_token(sub="alice", user_id=1)
    session.validate_and_adopt(old)
    new = make_token(sub="bob", user_id=2, exp_in=7200)

    def replaced_then_401(request):
        session.validate_and_adopt(new)
        return 401, {"message": "expired"}

    backend.add("GET", "/expenses/my", replaced_then_401)

    with pytest.raises(AuthorizationFailure):
        gateway.get_json("/expenses/my")

    assert session.token == new
    assert session.is_authenticated
    assert navigator.current_route == "/expenses"


def test_response_after_logout_is_dropped(gateway, session, backend):
    session.validate_and_adopt(make_token())

    def logout_while_in_flight(request):
        session.logout()
        return 200, {"id": 1}

    backend.add("GET", "/expenses/1", logout_while_in_flight)

    with pytest.raises(StaleResponse):
        gateway.get_json("/expenses/1")


@pytest.mark.parametrize(
    "status, body, exc_type",
    [
        (400, {"message": "Amount must be positive"}, ValidationError),
        (422, {"amount": "must be greater than 0"}, ValidationError),
        (403, {"message": "Access denied"}, ForbiddenAction),
        (404, {"message": "Expense not found"}, NotFound),
        (500, {"message": "Internal error"}, TransportFailure),
        (503, "Service Unavailable", TransportFailure),
    ],
)
def test_error_status_mapping(gateway, backend, status, body, exc_type):
    backend.add("GET", "/expenses/9", (status, body))
    with pytest.raises(exc_type):
        gateway.get_json("/expenses/9")


def test_field_map_names_the_field(gateway, backend):
    backend.add("POST", "/expenses", (400, {"description": "must not be blank"}))
    with pytest.raises(ValidationError) as exc:
        gateway.post_json("/expenses", {})
    assert exc.value.field == "description"
    assert "must not be blank" in str(exc.value)


def test_transport_errors_are_wrapped(session, navigator):
    class Broken(requests.Session):
        def request(self, *args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

    gateway = HttpGateway(API_BASE, session, navigator=navigator, http=Broken())
    with pytest.raises(TransportFailure):
        gateway.get_json("/expenses/my")


def test_timeouts_are_wrapped(session, navigator):
    class Slow(requests.Session):
        def request(self, *args, **kwargs):
            raise requests.exceptions.ReadTimeout("slow")

    gateway = HttpGateway(API_BASE, session, navigator=navigator, http=Slow())
    with pytest.raises(TransportFailure):
        gateway.get_json("/expenses/my")


def test_invalid_json_is_a_transport_failure(gateway, backend):
    backend.add("GET", "/expenses/1", (200, b"<html>"))
    with pytest.raises(TransportFailure):
        gateway.get_json("/expenses/1")


def test_no_retries(gateway, backend):
    backend.add("GET", "/expenses/my", (502, {"message": "bad gateway"}))
    with pytest.raises(TransportFailure):
        gateway.get_json("/expenses/my")
    assert len(backend.calls) == 1
