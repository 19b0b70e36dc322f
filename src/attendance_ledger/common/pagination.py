from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Sequence, TypeVar

from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.exceptions import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def of(cls, page: Optional[Any] = None, page_size: Optional[Any] = None) -> "PageRequest":
        try:
            page_i = int(page) if page not in (None, "") else 1
            size_i = int(page_size) if page_size not in (None, "") else DEFAULT_PAGE_SIZE
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")
        if page_i < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= size_i <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        return cls(page=page_i, page_size=size_i)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T]
    total: int
    page: int
    page_size: int
    extra: dict = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

    @classmethod
    def slice(cls, items: Sequence[T], request: PageRequest) -> "Page[T]":
        """Paginate an in-memory sequence."""
        chunk = list(items)[request.offset : request.offset + request.page_size]
        return cls(items=chunk, total=len(items), page=request.page, page_size=request.page_size)
