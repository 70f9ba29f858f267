"""
Filter/Search/Sort Engine and Collection View.

The engine is a pure transformation

    (superset, filters, query, sort, schema) -> displayed list

that is re-run on every filter change or keystroke without going back to the
server. CollectionView is the per-page state container that owns the
criteria, the displayed list and the render status, and notifies listeners
through a single hook whenever any of them changes.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Generic, Mapping, Optional, Sequence, TypeVar, Union

from gymdesk.core.enums import (
    MEMBER_STATUS_RANK,
    PLAN_RANK,
    REORDER_STATUS_RANK,
    ColumnKind,
    SortDirection,
    ViewStatus,
    enum_value,
    rank_of,
)
from gymdesk.schemas.member import strip_id_prefix
from gymdesk.services.collection import (
    FetchOutcome,
    RemoteCollection,
    active_criteria,
    is_active_criterion,
)
from gymdesk.utils.errors import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Accessor = Union[str, Callable[[Any], Any]]


def resolve(item: Any, accessor: Accessor) -> Any:
    """Read a field from an entity by attribute name, dict key or callable."""
    if callable(accessor):
        return accessor(item)
    if isinstance(item, Mapping):
        return item.get(accessor)
    return getattr(item, accessor, None)


def _instant(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp()
    if isinstance(value, str):
        try:
            return _instant(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


# =============================================================================
# Columns and Sort
# =============================================================================


@dataclass(frozen=True)
class Column:
    """A sortable column and its comparator family."""

    key: str
    kind: ColumnKind
    accessor: Accessor
    label: str = ""
    prefix: str = ""
    ranks: Optional[Mapping[Any, int]] = None

    def sort_key(self, item: Any) -> Any:
        value = resolve(item, self.accessor)

        if self.kind == ColumnKind.NUMERIC_ID:
            number = strip_id_prefix(value, self.prefix)
            return (0, 0) if number is None else (1, number)

        if self.kind == ColumnKind.TEXT:
            return "" if value is None else str(enum_value(value)).casefold()

        if self.kind == ColumnKind.RANK:
            return rank_of(self.ranks or {}, value)

        if self.kind == ColumnKind.DATE:
            instant = _instant(value)
            return (0, 0.0) if instant is None else (1, instant)

        # NUMBER
        return (0, 0) if value is None else (1, value)


@dataclass(frozen=True)
class SortSpec:
    """Active sort column and direction."""

    column: str
    direction: SortDirection = SortDirection.ASC

    def toggled(self, column: str) -> "SortSpec":
        """Same column flips direction, a new column starts ascending."""
        if column == self.column:
            return SortSpec(column, self.direction.flipped())
        return SortSpec(column, SortDirection.ASC)


@dataclass(frozen=True)
class ViewSchema:
    """Columns, filter fields and search fields for one entity type."""

    columns: tuple[Column, ...]
    filter_fields: Mapping[str, Accessor]
    search_fields: tuple[Accessor, ...]
    default_sort: Optional[SortSpec] = None

    def column(self, key: str) -> Column:
        for column in self.columns:
            if column.key == key:
                return column
        raise KeyError(f"Unknown column: {key}")


# =============================================================================
# Engine
# =============================================================================


def _normalize(value: Any) -> str:
    return str(enum_value(value)).strip().casefold()


def matches_filters(item: Any, filters: Mapping[str, Any], schema: ViewSchema) -> bool:
    """AND of equality predicates. Inactive criteria always match."""
    for key, expected in filters.items():
        if not is_active_criterion(expected):
            continue
        accessor = schema.filter_fields.get(key)
        if accessor is None:
            continue
        actual = resolve(item, accessor)
        if actual is None or _normalize(actual) != _normalize(expected):
            return False
    return True


def matches_search(item: Any, query: Optional[str], schema: ViewSchema) -> bool:
    """Case-insensitive substring match, OR across the search fields."""
    needle = (query or "").strip().casefold()
    if not needle:
        return True
    for accessor in schema.search_fields:
        value = resolve(item, accessor)
        if value is not None and needle in str(enum_value(value)).casefold():
            return True
    return False


def filter_items(
    items: Sequence[T], filters: Mapping[str, Any], query: Optional[str], schema: ViewSchema
) -> list[T]:
    return [
        item
        for item in items
        if matches_filters(item, filters, schema) and matches_search(item, query, schema)
    ]


def sort_items(items: Sequence[T], sort: Optional[SortSpec], schema: ViewSchema) -> list[T]:
    """Stable sort; ties keep their input order in both directions."""
    if sort is None:
        return list(items)
    column = schema.column(sort.column)
    return sorted(
        items,
        key=column.sort_key,
        reverse=sort.direction == SortDirection.DESC,
    )


def apply_view(
    superset: Sequence[T],
    filters: Mapping[str, Any],
    query: Optional[str],
    sort: Optional[SortSpec],
    schema: ViewSchema,
) -> list[T]:
    """Filter and search first, then sort the displayed list."""
    return sort_items(filter_items(superset, filters, query, schema), sort, schema)


# =============================================================================
# Schemas
# =============================================================================


MEMBER_VIEW_SCHEMA = ViewSchema(
    columns=(
        Column("id", ColumnKind.NUMERIC_ID, "member_id", "ID", prefix="M-"),
        Column("name", ColumnKind.TEXT, "name", "Name"),
        Column("email", ColumnKind.TEXT, "email", "Email"),
        Column("location", ColumnKind.TEXT, "location_name", "Location"),
        Column("plan", ColumnKind.RANK, "plan", "Plan", ranks=PLAN_RANK),
        Column("status", ColumnKind.RANK, "status", "Status", ranks=MEMBER_STATUS_RANK),
        Column("join_date", ColumnKind.DATE, "created_at", "Join Date"),
    ),
    filter_fields={"location": "location_id", "plan": "plan", "status": "status"},
    search_fields=("name", "email", "member_id", "phone"),
)

REORDER_VIEW_SCHEMA = ViewSchema(
    columns=(
        Column("request_number", ColumnKind.NUMERIC_ID, "request_number", "Request #", prefix="RO-"),
        Column("requested_at", ColumnKind.DATE, "requested_at", "Date"),
        Column("product", ColumnKind.TEXT, "product_name", "Product"),
        Column("category", ColumnKind.TEXT, "category_name", "Category"),
        Column("location", ColumnKind.TEXT, "location_name", "Location"),
        Column("quantity", ColumnKind.NUMBER, "quantity_requested", "Quantity"),
        Column("total_cost", ColumnKind.NUMBER, "total_cost", "Total Cost"),
        Column("status", ColumnKind.RANK, "status", "Status", ranks=REORDER_STATUS_RANK),
        Column("requested_by", ColumnKind.TEXT, "requested_by", "Requested By"),
    ),
    filter_fields={"status": "status", "location": "location_id"},
    search_fields=("request_number", "product_name", "product_sku", "requested_by"),
    default_sort=SortSpec("requested_at", SortDirection.DESC),
)


def with_id_prefixes(schema: ViewSchema, prefixes: Mapping[str, str]) -> ViewSchema:
    """Copy of a schema with the NUMERIC_ID prefixes replaced per column key."""
    columns = tuple(
        Column(c.key, c.kind, c.accessor, c.label, prefixes.get(c.key, c.prefix), c.ranks)
        if c.kind == ColumnKind.NUMERIC_ID
        else c
        for c in schema.columns
    )
    return ViewSchema(columns, schema.filter_fields, schema.search_fields, schema.default_sort)


# =============================================================================
# Collection View
# =============================================================================

Listener = Callable[["CollectionView"], None]


@dataclass
class CollectionView(Generic[T]):
    """
    State container for one list page.

    All state changes go through methods that end in notify_changed(), so a
    page renders from a single consistent snapshot.
    """

    collection: RemoteCollection
    schema: ViewSchema
    filters: dict[str, Any] = field(default_factory=dict)
    query: str = ""
    sort: Optional[SortSpec] = None
    displayed: list[T] = field(default_factory=list)
    status: ViewStatus = ViewStatus.IDLE
    error_message: Optional[str] = None
    retry_after: Optional[str] = None
    _server_filtered: bool = field(default=False, init=False, repr=False)
    _listeners: list[Listener] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.sort is None:
            self.sort = self.schema.default_sort

    # -- observers ---------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def notify_changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # -- derived -----------------------------------------------------------

    @property
    def base(self) -> list[T]:
        """List the engine runs over: the superset, or a server-filtered result."""
        if self._server_filtered:
            return self.collection.last_result
        return self.collection.superset

    @property
    def is_empty(self) -> bool:
        return self.status == ViewStatus.EMPTY

    @property
    def has_active_filters(self) -> bool:
        return bool(active_criteria(self.filters)) or bool(self.query.strip())

    # -- fetching ----------------------------------------------------------

    async def load(self) -> Optional[FetchOutcome]:
        """Seed fetch of the full superset."""
        return await self.refresh()

    async def refresh(self, server_filters: Optional[dict[str, Any]] = None) -> Optional[FetchOutcome]:
        """
        Re-fetch from the server and recompute the displayed list.

        Without server_filters the superset is refreshed; with them the
        server-filtered result becomes the base for local filtering.
        Failures are recorded on the view, never raised.
        """
        self.status = ViewStatus.LOADING
        self.notify_changed()

        try:
            outcome = await self.collection.fetch_collection(server_filters)
        except ApiError as e:
            logger.warning(f"{self.collection.endpoint.path} refresh failed: {e.message}")
            self.status = ViewStatus.ERROR
            self.error_message = e.message
            self.notify_changed()
            return None

        if outcome.stale:
            return outcome

        if outcome.rate_limited:
            self.status = ViewStatus.RATE_LIMITED
            self.retry_after = outcome.retry_after
            self.error_message = None
            self.notify_changed()
            return outcome

        self._server_filtered = outcome.filtered
        self.error_message = None
        self.retry_after = None
        self.recompute()
        return outcome

    # -- criteria ----------------------------------------------------------

    def set_filter(self, key: str, value: Any) -> None:
        if is_active_criterion(value):
            self.filters[key] = value
        else:
            self.filters.pop(key, None)
        self.recompute()

    def clear_filters(self) -> None:
        self.filters.clear()
        self.recompute()

    def set_search(self, query: Optional[str]) -> None:
        self.query = query or ""
        self.recompute()

    def sort_by(self, column: str) -> None:
        self.schema.column(column)
        if self.sort is None:
            self.sort = SortSpec(column)
        else:
            self.sort = self.sort.toggled(column)
        self.recompute()

    def recompute(self) -> None:
        """
        Run the engine over the base list and update the render status.

        RATE_LIMITED and ERROR stick until the next successful fetch.
        """
        self.displayed = apply_view(self.base, self.filters, self.query, self.sort, self.schema)
        if self.status not in (ViewStatus.RATE_LIMITED, ViewStatus.ERROR):
            self.status = ViewStatus.READY if self.displayed else ViewStatus.EMPTY
        self.notify_changed()

    def replace_entity(self, entity: T) -> None:
        self.collection.replace_cached(entity)
        self.recompute()
