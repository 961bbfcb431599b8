"""Page envelope returned by list endpoints, and the request that produces it"""

import math
from typing import Generic, List, Sequence, Tuple, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import ApiModel

T = TypeVar("T")


class Page(ApiModel, Generic[T]):
    """
    One page of a sorted listing.

    Only the counting fields are kept from the server envelope; `pageable`,
    `sort` and the derived booleans are recomputed locally.
    """

    content: List[T] = Field(default_factory=list)
    total_elements: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    number: int = Field(default=0, ge=0)
    size: int = Field(gt=0)

    @model_validator(mode="after")
    def _check_counts(self):
        if len(self.content) > self.size:
            raise ValueError(
                f"page holds {len(self.content)} items but its size is {self.size}"
            )
        expected_pages = math.ceil(self.total_elements / self.size)
        if self.total_pages != expected_pages:
            raise ValueError(
                f"totalPages {self.total_pages} does not match "
                f"ceil({self.total_elements} / {self.size}) = {expected_pages}"
            )
        return self

    @property
    def is_first(self) -> bool:
        return self.number == 0

    @property
    def is_last(self) -> bool:
        return self.number + 1 >= self.total_pages

    @property
    def is_empty(self) -> bool:
        return not self.content


class PageRequest(BaseModel):
    page: int = Field(default=0, ge=0)
    size: int = Field(default=10, gt=0)
    sort: Tuple[str, ...] = ()

    @field_validator("sort", mode="before")
    @classmethod
    def _split_sort(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,) if value else ()
        return tuple(v for v in value if v)

    def to_params(self) -> List[Tuple[str, str]]:
        """Spring-style query: page, size and one sort parameter per key."""
        params: List[Tuple[str, str]] = [("page", str(self.page)), ("size", str(self.size))]
        params.extend(("sort", key) for key in self.sort)
        return params

    def with_page(self, page: int) -> "PageRequest":
        return self.model_copy(update={"page": page})

    @classmethod
    def of(cls, page: int = 0, size: int = 10, sort: Sequence[str] = ()) -> "PageRequest":
        return cls(page=page, size=size, sort=sort)
