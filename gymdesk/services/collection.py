"""
Remote Collection Client.

Holds the authoritative, server-owned superset of a collection (members,
reorder requests) and the result of the most recent query.

Invariants:
- The superset is only replaced by a fetch with no active filters or search.
- Every fetch takes a sequence number; responses that are not the latest
  issued are marked stale and leave the cache untouched.
- HTTP 429 is a distinct outcome, never an exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from gymdesk.gateways.api_client import DashboardApiClient
from gymdesk.schemas.member import Member
from gymdesk.schemas.reorder import ReorderRequest
from gymdesk.utils.errors import ApiError, ApiPayloadError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

INACTIVE_FILTER_VALUES = (None, "", "all")


def is_active_criterion(value: Any) -> bool:
    """Empty, None and "all" mean "no filter"."""
    if isinstance(value, str):
        return value.strip().lower() not in ("", "all")
    return value not in INACTIVE_FILTER_VALUES


def active_criteria(filters: Optional[dict[str, Any]]) -> dict[str, Any]:
    if not filters:
        return {}
    return {k: v for k, v in filters.items() if is_active_criterion(v)}


@dataclass(frozen=True)
class CollectionEndpoint:
    """Where a collection lives and how its filters map to query parameters."""

    path: str
    envelope_key: str
    model: type[BaseModel]
    filter_params: dict[str, str] = field(default_factory=dict)
    search_param: Optional[str] = None
    id_attr: str = "id"

    def item_path(self, entity_id: Any) -> str:
        return f"{self.path}/{entity_id}"


MEMBER_ENDPOINT = CollectionEndpoint(
    path="/members",
    envelope_key="members",
    model=Member,
    filter_params={"location": "location", "plan": "plan", "status": "status"},
    search_param="search",
)

REORDER_ENDPOINT = CollectionEndpoint(
    path="/inventory/reorders",
    envelope_key="requests",
    model=ReorderRequest,
    filter_params={"status": "status", "location": "location_id"},
)


@dataclass
class FetchOutcome(Generic[T]):
    """Result of one collection fetch."""

    items: list[T] = field(default_factory=list)
    rate_limited: bool = False
    retry_after: Optional[str] = None
    stale: bool = False
    sequence: int = 0
    filtered: bool = False


class RemoteCollection(Generic[T]):
    """
    Client-side cache of one server-owned collection.

    Example:
        >>> members = RemoteCollection(client, MEMBER_ENDPOINT)
        >>> outcome = await members.fetch_collection()
        >>> len(members.superset)
    """

    def __init__(self, client: DashboardApiClient, endpoint: CollectionEndpoint):
        self._client = client
        self.endpoint = endpoint
        self.superset: list[T] = []
        self.last_result: list[T] = []
        self._issued = 0
        self.loaded = False
        self.retry_after: Optional[str] = None

    @property
    def latest_sequence(self) -> int:
        return self._issued

    def _next_sequence(self) -> int:
        self._issued += 1
        return self._issued

    def _is_stale(self, sequence: int) -> bool:
        if sequence == self._issued:
            return False
        logger.debug(
            f"{self.endpoint.path}: discarding stale response #{sequence} "
            f"(latest #{self._issued})"
        )
        return True

    def build_params(
        self, filters: Optional[dict[str, Any]] = None, search: Optional[str] = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for key, value in active_criteria(filters).items():
            param = self.endpoint.filter_params.get(key)
            if param is None:
                logger.debug(f"{self.endpoint.path}: no server parameter for filter '{key}'")
                continue
            params[param] = value.value if hasattr(value, "value") else value
        if search and search.strip() and self.endpoint.search_param:
            params[self.endpoint.search_param] = search.strip()
        return params

    def _parse_items(self, data: Any) -> list[T]:
        if isinstance(data, dict):
            raw = data.get(self.endpoint.envelope_key) or []
        elif isinstance(data, list):
            raw = data
        else:
            raw = []
        return [self._validate(item) for item in raw]

    def _validate(self, raw: Any) -> T:
        try:
            return self.endpoint.model.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"{self.endpoint.path}: malformed row in response: {e.errors()[:1]}")
            raise ApiPayloadError(
                "Received unexpected data from the server", payload=raw, original_error=e
            ) from e

    async def fetch_collection(
        self, filters: Optional[dict[str, Any]] = None, search: Optional[str] = None
    ) -> FetchOutcome[T]:
        """
        Fetch the collection, optionally filtered server-side.

        Raises:
            ApiRejectedError / ApiNetworkError on failure, ApiPayloadError on
            a malformed body. Failures of superseded fetches come back stale.
        """
        sequence = self._next_sequence()
        filtered = bool(active_criteria(filters)) or bool(search and search.strip())
        params = self.build_params(filters, search)

        try:
            response = await self._client.get(self.endpoint.path, params=params or None)
        except ApiError:
            # A failure that lost the race must not clobber a newer result
            if self._is_stale(sequence):
                return FetchOutcome(stale=True, sequence=sequence, filtered=filtered)
            raise

        if self._is_stale(sequence):
            return FetchOutcome(stale=True, sequence=sequence, filtered=filtered)

        if response.rate_limited:
            self.retry_after = response.retry_after
            return FetchOutcome(
                rate_limited=True,
                retry_after=response.retry_after,
                sequence=sequence,
                filtered=filtered,
            )

        items = self._parse_items(response.data)
        self.last_result = items
        if not filtered:
            self.superset = list(items)
            self.loaded = True
        logger.debug(f"{self.endpoint.path}: fetched {len(items)} items (filtered={filtered})")
        return FetchOutcome(items=items, sequence=sequence, filtered=filtered)

    async def fetch_one(self, entity_id: Any) -> Optional[T]:
        """Refresh a single entity. Returns None when rate limited."""
        response = await self._client.get(self.endpoint.item_path(entity_id))
        if response.rate_limited:
            self.retry_after = response.retry_after
            return None
        entity = self._validate(response.data)
        self.replace_cached(entity)
        return entity

    def get_cached(self, entity_id: Any) -> Optional[T]:
        for item in self.superset:
            if getattr(item, self.endpoint.id_attr) == entity_id:
                return item
        return None

    def replace_cached(self, entity: T) -> None:
        """Swap the cached copy (superset and last result) for a fresh one."""
        entity_id = getattr(entity, self.endpoint.id_attr)
        for items in (self.superset, self.last_result):
            for index, item in enumerate(items):
                if getattr(item, self.endpoint.id_attr) == entity_id:
                    items[index] = entity

    def patch_cached(self, entity_id: Any, **changes: Any) -> Optional[T]:
        """Apply field changes to the cached copy when the server returns no entity."""
        current = self.get_cached(entity_id)
        if current is None:
            current = next(
                (i for i in self.last_result if getattr(i, self.endpoint.id_attr) == entity_id),
                None,
            )
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self.replace_cached(updated)
        return updated
