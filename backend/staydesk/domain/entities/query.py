"""Domain entities for list views — query state, page slices and page windows."""

from dataclasses import dataclass, field
from typing import Any, Final

from .record import Record


class _Ellipsis:
    """Marker for a collapsed run of pages in a page window."""

    _instance: "_Ellipsis | None" = None

    def __new__(cls) -> "_Ellipsis":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ELLIPSIS"

    def __str__(self) -> str:
        return "…"


ELLIPSIS: Final = _Ellipsis()

PageWindowItem = int | _Ellipsis


@dataclass
class QueryState:
    """Search, filter and paging state of one list view.

    Owned by a ListViewController and never persisted.
    """

    search_term: str = ""
    filters: dict[str, Any] = field(default_factory=dict)
    minimums: dict[str, Any] = field(default_factory=dict)
    maximums: dict[str, Any] = field(default_factory=dict)
    page_index: int = 1
    page_size: int = 10

    def __post_init__(self) -> None:
        if self.page_index < 1:
            raise ValueError("page_index must be >= 1")
        if self.page_size <= 0:
            raise ValueError("page_size must be > 0")


@dataclass(frozen=True)
class PageSlice:
    rows: tuple[Record, ...]
    page_index: int
    page_size: int
    total_pages: int
    filtered_count: int

    @property
    def first_row_number(self) -> int:
        """1-based position of the first row, 0 when the page is empty."""
        if not self.rows:
            return 0
        return (self.page_index - 1) * self.page_size + 1

    @property
    def last_row_number(self) -> int:
        return min(self.page_index * self.page_size, self.filtered_count)


@dataclass(frozen=True)
class PageView:
    """Everything a list screen needs to render one page."""

    page: PageSlice
    window: tuple[PageWindowItem, ...]
    search_term: str
    total_count: int
