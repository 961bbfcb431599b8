import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import expense_json, page_json
from expense_client.models.expense import Expense
from expense_client.models.page import Page, PageRequest
from expense_client.services.pagination import PaginatedResourceFetcher
from expense_client.utils.exceptions import TransportFailure


def _page(total: int, number: int, size: int) -> Page[Expense]:
    start = number * size
    count = max(0, min(size, total - start))
    items = [expense_json(expense_id=start + i + 1) for i in range(count)]
    return Page[Expense].model_validate(page_json(items, total=total, number=number, size=size))


class FakeListing:
    def __init__(self, total: int):
        self.total = total
        self.requests = []
        self.fail = False

    def __call__(self, request: PageRequest) -> Page[Expense]:
        self.requests.append(request)
        if self.fail:
            raise TransportFailure("down", status_code=503)
        return _page(self.total, request.page, request.size)


@pytest.mark.parametrize("total, size", [(0, 10), (1, 10), (10, 10), (11, 10), (25, 7)])
def test_page_invariants_hold(total, size):
    page = _page(total, 0, size)
    assert len(page.content) <= page.size
    assert page.total_pages == -(-total // size)


def test_page_with_too_many_items_is_rejected():
    items = [expense_json(expense_id=i) for i in range(3)]
    with pytest.raises(PydanticValidationError):
        Page[Expense].model_validate(page_json(items, total=3, size=2))


def test_page_with_wrong_page_count_is_rejected():
    data = page_json([], total=30, size=10)
    data["totalPages"] = 4
    with pytest.raises(PydanticValidationError):
        Page[Expense].model_validate(data)


def test_page_request_params():
    request = PageRequest.of(page=2, size=5, sort=["createdAt,asc", "id,desc"])
    assert request.to_params() == [
        ("page", "2"),
        ("size", "5"),
        ("sort", "createdAt,asc"),
        ("sort", "id,desc"),
    ]
    assert PageRequest(sort="expenseDate,desc").sort == ("expenseDate,desc",)
    assert PageRequest(sort=None).sort == ()


def test_fetch_and_step_through_pages():
    listing = FakeListing(total=25)
    fetcher = PaginatedResourceFetcher(listing, page_size=10, sort=("expenseDate,desc",))

    first = fetcher.fetch()
    assert first.number == 0 and len(first.content) == 10
    assert fetcher.next_page().number == 1
    last = fetcher.next_page()
    assert last.number == 2 and last.is_last
    # Already on the last page
    assert fetcher.next_page() is last
    assert fetcher.previous_page().number == 1
    assert all(r.sort == ("expenseDate,desc",) for r in listing.requests)


def test_set_page_size_resets_to_first_page():
    listing = FakeListing(total=25)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)
    fetcher.fetch(page=2)

    page = fetcher.set_page_size(5)
    assert page.number == 0
    assert page.size == 5
    assert page.total_pages == 5


def test_refresh_steps_back_when_page_emptied():
    listing = FakeListing(total=11)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)
    fetcher.fetch(page=1)

    listing.total = 10
    page = fetcher.refresh()
    assert page.number == 0
    assert len(page.content) == 10


def test_failed_fetch_keeps_previous_page():
    listing = FakeListing(total=5)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)
    before = fetcher.fetch()

    listing.fail = True
    with pytest.raises(TransportFailure):
        fetcher.refresh()
    assert fetcher.current_page is before


def test_refresh_returns_to_first_page_when_listing_emptied():
    listing = FakeListing(total=11)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)
    fetcher.fetch(page=1)

    listing.total = 0
    page = fetcher.refresh()
    assert page.number == 0
    assert page.is_empty
    assert fetcher.request.page == 0


def test_refresh_after_mutation_skips_unloaded_listing():
    listing = FakeListing(total=3)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)

    assert fetcher.refresh_after_mutation() is None
    assert listing.requests == []


def test_refresh_after_mutation_logs_failure_and_keeps_page():
    listing = FakeListing(total=3)
    fetcher = PaginatedResourceFetcher(listing, page_size=10)
    before = fetcher.fetch()

    listing.fail = True
    assert fetcher.refresh_after_mutation() is None
    assert fetcher.current_page is before


def test_reset_forgets_page_but_keeps_size_and_sort():
    listing = FakeListing(total=30)
    fetcher = PaginatedResourceFetcher(listing, page_size=5, sort=["amount,desc"])
    fetcher.fetch(page=2)

    fetcher.reset()
    assert fetcher.current_page is None
    assert not fetcher.is_loaded
    assert fetcher.request.page == 0
    assert fetcher.request.size == 5
    assert fetcher.request.sort == ("amount,desc",)
