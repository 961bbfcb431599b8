"""Page-at-a-time access to sorted listings"""

import threading
from typing import Callable, Generic, Optional, Sequence, TypeVar

from ..models.page import Page, PageRequest
from ..utils.exceptions import ExpenseClientError
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FetchFn = Callable[[PageRequest], Page[T]]


class PaginatedResourceFetcher(Generic[T]):
    """
    Holds the current page of one listing.

    The page is only replaced by a successful fetch; a failed fetch leaves the
    previous page in place and propagates the error. After any mutation the
    owner calls refresh() instead of patching `current_page` locally.
    """

    def __init__(
        self,
        fetch: FetchFn,
        page_size: int = 10,
        sort: Sequence[str] = (),
        name: str = "listing",
    ):
        self._fetch = fetch
        self.name = name
        self._request = PageRequest.of(page=0, size=page_size, sort=sort)
        self._page: Optional[Page[T]] = None
        self._lock = threading.Lock()

    @property
    def current_page(self) -> Optional[Page[T]]:
        return self._page

    @property
    def request(self) -> PageRequest:
        return self._request

    @property
    def is_loaded(self) -> bool:
        return self._page is not None

    def fetch(
        self,
        page: Optional[int] = None,
        size: Optional[int] = None,
        sort: Optional[Sequence[str]] = None,
    ) -> Page[T]:
        """Fetch one page; omitted arguments keep their current value."""
        request = PageRequest.of(
            page=self._request.page if page is None else page,
            size=self._request.size if size is None else size,
            sort=self._request.sort if sort is None else sort,
        )
        result = self._fetch(request)
        with self._lock:
            self._request = request
            self._page = result
        logger.debug(
            "Page fetched",
            listing=self.name,
            page=result.number,
            size=result.size,
            total_elements=result.total_elements,
        )
        return result

    def refresh(self) -> Page[T]:
        """
        Re-fetch the current page.

        When a mutation emptied the last page, steps back to the new last page.
        """
        result = self.fetch()
        if result.is_empty and result.number > 0:
            last = max(0, min(result.number - 1, result.total_pages - 1))
            logger.info("Current page emptied, stepping back", listing=self.name, page=last)
            result = self.fetch(page=last)
        return result

    def refresh_after_mutation(self) -> Optional[Page[T]]:
        """
        Re-fetch a loaded listing once a mutation has succeeded.

        A failed re-fetch is logged and leaves the previous page in place; it
        never turns the completed mutation into an error.
        """
        if not self.is_loaded:
            return None
        try:
            return self.refresh()
        except ExpenseClientError as e:
            logger.warning("Refresh after mutation failed", listing=self.name, error=str(e))
            return None

    def reset(self) -> None:
        """Forget the cached page and go back to page 0, keeping size and sort."""
        with self._lock:
            self._page = None
            self._request = self._request.with_page(0)
        logger.debug("Listing reset", listing=self.name)

    def next_page(self) -> Page[T]:
        if self._page is not None and self._page.is_last:
            return self._page
        return self.fetch(page=self._request.page + 1)

    def previous_page(self) -> Page[T]:
        if self._request.page == 0:
            return self._page if self._page is not None else self.fetch()
        return self.fetch(page=self._request.page - 1)

    def set_page_size(self, size: int) -> Page[T]:
        return self.fetch(page=0, size=size)
