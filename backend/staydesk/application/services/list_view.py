"""List view — search, filter and paginate a collection snapshot.

The module-level functions are pure and carry all the arithmetic;
``ListViewController`` owns one QueryState and keeps its page index valid.
"""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from staydesk.domain.entities import (
    ALL_SUB_KEY,
    ELLIPSIS,
    PageSlice,
    PageView,
    PageWindowItem,
    QueryState,
    Record,
    ResourceKind,
    parse_sub_key,
)

from .collection_cache import CollectionCache

logger = logging.getLogger(__name__)

# Fields matched (case-insensitive substring) by the search box of each screen.
SEARCH_FIELDS: dict[ResourceKind, tuple[str, ...]] = {
    ResourceKind.USER: ("name", "email", "phone"),
    ResourceKind.ROOM: ("tenPhong", "moTa", "id"),
    ResourceKind.LOCATION: ("tenViTri", "tinhThanh", "quocGia"),
    ResourceKind.BOOKING: ("id", "maPhong", "maNguoiDung", "tenNguoiDung", "tenPhong"),
}

_WINDOW_FULL_LIMIT = 7


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _matches_value(actual: Any, expected: Any) -> bool:
    """Equality tolerant of int/str/bool representation differences."""
    if actual is None:
        return False
    return str(actual).strip().lower() == str(expected).strip().lower()


def _comparable(value: Any) -> float | date | None:
    """Numbers compare numerically; ISO dates and datetimes compare by day."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _within_bound(actual: Any, bound: Any, *, lower: bool) -> bool:
    left, right = _comparable(actual), _comparable(bound)
    if left is None or right is None or type(left) is not type(right):
        return False
    return left >= right if lower else left <= right  # type: ignore[operator]


def apply_filter(
    records: Iterable[Record],
    query: QueryState,
    search_fields: Sequence[str] = (),
) -> list[Record]:
    """Keep the records that pass every filter, bound and the search term."""
    term = query.search_term.strip().lower()
    filters = {k: v for k, v in query.filters.items() if not _is_blank(v)}
    minimums = {k: v for k, v in query.minimums.items() if not _is_blank(v)}
    maximums = {k: v for k, v in query.maximums.items() if not _is_blank(v)}

    result: list[Record] = []
    for record in records:
        if any(not _matches_value(record.get(f), v) for f, v in filters.items()):
            continue
        if any(not _within_bound(record.get(f), v, lower=True) for f, v in minimums.items()):
            continue
        if any(not _within_bound(record.get(f), v, lower=False) for f, v in maximums.items()):
            continue
        if term and not any(
            term in str(record.get(f)).lower()
            for f in search_fields
            if record.get(f) is not None
        ):
            continue
        result.append(record)
    return result


def total_pages_for(count: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be > 0")
    return max(1, math.ceil(count / page_size))


def paginate(filtered: Sequence[Record], page_index: int, page_size: int) -> PageSlice:
    """Slice one page out of ``filtered``. Pages are 1-based."""
    if page_index < 1:
        raise ValueError("page_index must be >= 1")
    total_pages = total_pages_for(len(filtered), page_size)
    start = (page_index - 1) * page_size
    return PageSlice(
        rows=tuple(filtered[start:start + page_size]),
        page_index=page_index,
        page_size=page_size,
        total_pages=total_pages,
        filtered_count=len(filtered),
    )


def page_window(current: int, total: int) -> list[PageWindowItem]:
    """Page numbers for pagination controls, with gaps collapsed to ELLIPSIS.

    >>> page_window(5, 10)
    [1, ELLIPSIS, 4, 5, 6, ELLIPSIS, 10]
    """
    total = max(1, total)
    current = min(max(1, current), total)

    if total <= _WINDOW_FULL_LIMIT:
        return list(range(1, total + 1))
    if current <= 4:
        return [*range(1, 6), ELLIPSIS, total]
    if current >= total - 3:
        return [1, ELLIPSIS, *range(total - 4, total + 1)]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


class ListViewController:
    """Turns the cached collection of one resource into a renderable page.

    Every change to the search term, a filter, a bound or the page size sends
    the view back to page 1 before the next render. ``render`` clamps the page
    index to the number of pages the current result actually has.
    """

    def __init__(
        self,
        cache: CollectionCache,
        kind: ResourceKind,
        *,
        sub_key: str = ALL_SUB_KEY,
        query: QueryState | None = None,
        search_fields: Sequence[str] | None = None,
    ):
        parse_sub_key(kind, sub_key)
        self._cache = cache
        self._kind = kind
        self._sub_key = sub_key
        self._query = query or QueryState()
        self._search_fields = tuple(search_fields or SEARCH_FIELDS[kind])

    @property
    def query(self) -> QueryState:
        return self._query

    @property
    def sub_key(self) -> str:
        return self._sub_key

    # ── Query state ──────────────────────────────────────────────────

    def set_search_term(self, term: str) -> None:
        self._query.search_term = term
        self._query.page_index = 1

    def set_filter(self, field_name: str, value: Any) -> None:
        if _is_blank(value):
            self._query.filters.pop(field_name, None)
        else:
            self._query.filters[field_name] = value
        self._query.page_index = 1

    def clear_filters(self) -> None:
        self._query.filters.clear()
        self._query.minimums.clear()
        self._query.maximums.clear()
        self._query.page_index = 1

    def set_bounds(self, field_name: str, *, minimum: Any = None, maximum: Any = None) -> None:
        for bounds, value in ((self._query.minimums, minimum), (self._query.maximums, maximum)):
            if _is_blank(value):
                bounds.pop(field_name, None)
            else:
                bounds[field_name] = value
        self._query.page_index = 1

    def set_scope(self, sub_key: str) -> None:
        parse_sub_key(self._kind, sub_key)
        self._sub_key = sub_key
        self._query.page_index = 1

    def set_page_size(self, page_size: int) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._query.page_size = page_size
        self._query.page_index = 1

    def set_page(self, page_index: int) -> None:
        self._query.page_index = max(1, page_index)

    # ── Rendering ────────────────────────────────────────────────────

    def view(self, records: Sequence[Record], total_count: int | None = None) -> PageView:
        """Render a page from already-loaded records."""
        filtered = apply_filter(records, self._query, self._search_fields)
        total_pages = total_pages_for(len(filtered), self._query.page_size)
        if self._query.page_index > total_pages:
            logger.debug(
                "Clamping %s page %d to %d", self._kind.value, self._query.page_index, total_pages
            )
            self._query.page_index = total_pages

        page = paginate(filtered, self._query.page_index, self._query.page_size)
        return PageView(
            page=page,
            window=tuple(page_window(page.page_index, page.total_pages)),
            search_term=self._query.search_term,
            total_count=len(records) if total_count is None else total_count,
        )

    async def render(self) -> PageView:
        snapshot = await self._cache.get(self._kind, self._sub_key)
        return self.view(snapshot.records, snapshot.total_count)


def filters_from_pairs(pairs: Iterable[str]) -> Mapping[str, str]:
    """Parse ``field:value`` strings (query-string form) into a mapping."""
    parsed: dict[str, str] = {}
    for pair in pairs:
        field_name, sep, value = pair.partition(":")
        if not sep or not field_name:
            raise ValueError(f"Expected 'field:value', got '{pair}'")
        parsed[field_name] = value
    return parsed
