import json

import pytest

from conftest import expense_json, page_json, sign_in
from expense_client.utils.exceptions import (
    AuthorizationFailure,
    ForbiddenAction,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)


@pytest.fixture
def manager(client):
    sign_in(client, roles=["ROLE_MANAGER"], user_id=3, sub="carol")
    return client


def _history_after(status):
    return [{
        "id": 1,
        "expenseId": 42,
        "approverUserId": 3,
        "approverUsername": "carol",
        "statusBefore": "SUBMITTED",
        "statusAfter": status,
        "comments": "missing receipt",
        "actionDate": "2024-03-02T09:00:00",
    }]


def test_list_pending_defaults_to_oldest_first(manager, backend):
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42)])))

    page = manager.approvals.list_pending()

    assert [e.id for e in page.content] == [42]
    query = backend.query(backend.calls[-1])
    assert query["sort"] == ["createdAt,asc"]
    assert query["page"] == ["0"]
    assert query["size"] == ["10"]


def test_reject_with_empty_comment_fails_before_network(manager, backend):
    calls_before = len(backend.calls)
    with pytest.raises(ValidationError):
        manager.approvals.decide(42, "reject", "")
    with pytest.raises(ValidationError):
        manager.approvals.decide(42, "reject", "   ")
    assert len(backend.calls) == calls_before


def test_reject_with_comment_appends_history(manager, backend):
    queue = [expense_json(42, user_id=1)]
    history = []

    def reject(request):
        body = json.loads(request.body)
        assert body == {"comments": "missing receipt"}
        history.extend(_history_after("REJECTED"))
        queue.clear()
        return 200, expense_json(42, status="REJECTED")

    backend.add("GET", "/approvals/pending", lambda r: (200, page_json(list(queue))))
    backend.add("POST", "/expenses/42/reject", reject)
    backend.add("GET", "/expenses/42/history", lambda r: (200, list(history)))

    manager.approvals.list_pending()
    result = manager.approvals.decide(42, "reject", "missing receipt")

    assert result.status.value == "REJECTED"
    entries = manager.expenses.history(42)
    assert len(entries) == 1
    assert entries[0].status_after.value == "REJECTED"
    # Queue was re-fetched, not patched
    assert len(backend.calls_to("GET", "/approvals/pending")) == 2
    assert manager.approvals.queue.current_page.content == []


def test_approve_sends_optional_comment(manager, backend):
    backend.add("POST", "/expenses/42/approve", (200, expense_json(42, status="APPROVED")))

    manager.approvals.decide(42, "approve")
    assert json.loads(backend.calls[-1].body) == {}

    manager.approvals.decide(42, "approve", "  ok  ")
    assert json.loads(backend.calls[-1].body) == {"comments": "ok"}


def test_remote_failure_leaves_queue_untouched(manager, backend):
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42)])))
    backend.add("POST", "/expenses/42/approve", (404, {"message": "Expense not found"}))
    before = manager.approvals.list_pending()

    with pytest.raises(NotFound) as exc:
        manager.approvals.decide(42, "approve")

    assert str(exc.value) == "Expense not found"
    assert manager.approvals.queue.current_page is before
    assert len(backend.calls_to("GET", "/approvals/pending")) == 1


def test_queued_item_is_checked_against_workflow(manager, backend):
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42, status="APPROVED")])))
    manager.approvals.list_pending()

    with pytest.raises(InvalidStateTransition):
        manager.approvals.decide(42, "approve")
    assert not backend.calls_to("POST", "/expenses/42/approve")


def test_employee_cannot_decide_queued_item(client, backend):
    sign_in(client, roles=["ROLE_EMPLOYEE"], user_id=7, sub="gina")
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42)])))
    client.approvals.list_pending()

    with pytest.raises(ForbiddenAction):
        client.approvals.decide(42, "approve")
    assert not client.approvals.can_review()


def test_edit_is_not_a_decision(manager):
    with pytest.raises(ValidationError):
        manager.approvals.decide(42, "edit")


def test_decision_stands_when_queue_refresh_fails(manager, backend):
    pending = iter([(200, page_json([expense_json(42)])), (503, {"message": "busy"})])
    backend.add("GET", "/approvals/pending", lambda r: next(pending))
    backend.add("POST", "/expenses/42/approve", (200, expense_json(42, status="APPROVED")))
    before = manager.approvals.list_pending()

    result = manager.approvals.decide(42, "approve")

    assert result.status.value == "APPROVED"
    assert manager.approvals.queue.current_page is before
    assert len(backend.calls_to("GET", "/approvals/pending")) == 2


def test_logout_drops_cached_queue(manager, backend):
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42)])))
    manager.approvals.list_pending(page=0)

    manager.logout()

    assert manager.approvals.queue.current_page is None
    assert manager.approvals.queue.request.page == 0


def test_unauthorized_response_drops_cached_queue(manager, backend):
    backend.add("GET", "/approvals/pending", (200, page_json([expense_json(42)])))
    manager.approvals.list_pending()
    backend.add("GET", "/approvals/pending", (401, {"message": "expired"}))

    with pytest.raises(AuthorizationFailure):
        manager.approvals.list_pending()

    assert manager.approvals.queue.current_page is None
    assert not manager.session.is_authenticated
