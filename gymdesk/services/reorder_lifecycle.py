"""
Reorder Request Lifecycle Controller.
Source: Inventory reorder requests page

State Diagram:
    PENDING -> APPROVED (approve)
    PENDING -> REJECTED (reject, reason defaults when omitted)
    APPROVED -> RECEIVED (receive, positive integer quantity)
    REJECTED and RECEIVED are terminal (view only).

After a successful transition the list under the active status tab, the
KPI stats and both chart series are refreshed, each independently, once
the mutating request has resolved.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional, Union

from gymdesk.core.config import DashboardSettings, get_settings
from gymdesk.core.enums import ReorderStatus
from gymdesk.gateways.api_client import ApiResponse, DashboardApiClient
from gymdesk.schemas.common import ChartData, Location
from gymdesk.schemas.reorder import (
    ApproveRequest,
    ReceiveRequest,
    RejectRequest,
    ReorderCreate,
    ReorderRequest,
    ReorderStats,
)
from gymdesk.services.collection import REORDER_ENDPOINT, RemoteCollection, is_active_criterion
from gymdesk.services.list_view import (
    REORDER_VIEW_SCHEMA,
    CollectionView,
    with_id_prefixes,
)
from gymdesk.services.reporting import ReportingService
from gymdesk.services.results import ActionResult, run_action
from gymdesk.services.state_machine import StateMachine, Transition
from gymdesk.utils.errors import ApiError, FormValidationError, validate_form

logger = logging.getLogger(__name__)

ALL_TAB = "all"
STATUS_TABS: tuple[str, ...] = (ALL_TAB,) + tuple(s.value for s in ReorderStatus)


class ReorderEvent(str, Enum):
    """Events that trigger reorder request transitions."""

    APPROVE = "approve"
    REJECT = "reject"
    RECEIVE = "receive"


REORDER_TRANSITIONS: list[Transition] = [
    Transition(ReorderStatus.PENDING, ReorderStatus.APPROVED, ReorderEvent.APPROVE),
    Transition(ReorderStatus.PENDING, ReorderStatus.REJECTED, ReorderEvent.REJECT),
    Transition(ReorderStatus.APPROVED, ReorderStatus.RECEIVED, ReorderEvent.RECEIVE),
]


_state_machine: Optional[StateMachine] = None


def get_reorder_state_machine() -> StateMachine:
    """Get singleton reorder state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = StateMachine(REORDER_TRANSITIONS, "reorder request")
    return _state_machine


def parse_quantity_received(value: Any) -> int:
    """
    Validate the received quantity: a positive whole number.

    Accepts ints and numeric strings ("12", " 12 "). Rejects None, blanks,
    booleans, fractions, NaN, zero and negatives.

    Raises:
        FormValidationError
    """
    message = "Please enter a valid quantity received (must be a positive whole number)"
    if value is None or isinstance(value, bool):
        raise FormValidationError(message, field="quantity_received")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float):
        if value != value or not value.is_integer():
            raise FormValidationError(message, field="quantity_received")
        quantity = int(value)
    else:
        text = str(value).strip()
        if not text.isdigit():
            raise FormValidationError(message, field="quantity_received")
        quantity = int(text)
    if quantity <= 0:
        raise FormValidationError(message, field="quantity_received")
    return quantity


class ReorderLifecycleController:
    """
    Drives the reorder requests page: status tabs, list view, KPIs, charts
    and the approve / reject / receive actions.
    """

    def __init__(
        self,
        client: DashboardApiClient,
        view: Optional[CollectionView] = None,
        reporting: Optional[ReportingService] = None,
        state_machine: Optional[StateMachine] = None,
        settings: Optional[DashboardSettings] = None,
    ):
        self._client = client
        self.settings = settings or get_settings()
        self.view = view or CollectionView(
            RemoteCollection(client, REORDER_ENDPOINT),
            with_id_prefixes(
                REORDER_VIEW_SCHEMA, {"request_number": self.settings.REORDER_NUMBER_PREFIX}
            ),
        )
        self.reporting = reporting or ReportingService(client)
        self.state_machine = state_machine or get_reorder_state_machine()
        self.active_tab: str = ALL_TAB
        self.stats: Optional[ReorderStats] = None
        self.status_breakdown: Optional[ChartData] = None
        self.trends: Optional[ChartData] = None
        self.locations: list[Location] = []

    @property
    def collection(self) -> RemoteCollection:
        return self.view.collection

    def _tab_filters(self) -> Optional[dict[str, Any]]:
        if is_active_criterion(self.active_tab):
            return {"status": self.active_tab}
        return None

    # -- loading -----------------------------------------------------------

    async def load(self) -> None:
        await asyncio.gather(
            self.view.refresh(self._tab_filters()),
            self.refresh_stats(),
            self.refresh_charts(),
            self.load_locations(),
        )

    async def select_tab(self, tab: Union[ReorderStatus, str]) -> None:
        """Switch status tab and re-fetch the list under it."""
        tab_value = tab.value if isinstance(tab, ReorderStatus) else str(tab)
        if tab_value not in STATUS_TABS:
            raise ValueError(f"Unknown status tab: {tab_value}")
        self.active_tab = tab_value
        self.view.filters.pop("status", None)
        if tab_value != ALL_TAB:
            self.view.filters["status"] = tab_value
        await self.view.refresh(self._tab_filters())

    async def refresh_stats(self) -> Optional[ReorderStats]:
        try:
            stats = await self.reporting.reorder_stats()
        except ApiError as e:
            logger.warning(f"Reorder stats refresh failed: {e.message}")
            return self.stats
        if stats is not None:
            self.stats = stats
        return self.stats

    async def refresh_charts(self) -> None:
        breakdown, trends = await asyncio.gather(
            self.reporting.reorder_status_breakdown(),
            self.reporting.reorder_trends(),
            return_exceptions=True,
        )
        if isinstance(breakdown, ApiError):
            logger.warning(f"Status breakdown refresh failed: {breakdown.message}")
        elif isinstance(breakdown, BaseException):
            raise breakdown
        elif breakdown is not None:
            self.status_breakdown = breakdown

        if isinstance(trends, ApiError):
            logger.warning(f"Trend chart refresh failed: {trends.message}")
        elif isinstance(trends, BaseException):
            raise trends
        elif trends is not None:
            self.trends = trends

    async def load_locations(self) -> list[Location]:
        try:
            self.locations = await self.reporting.locations()
        except ApiError as e:
            logger.warning(f"Location list failed: {e.message}")
        return self.locations

    async def _refresh_after_mutation(self) -> None:
        # Only called once the mutating request has resolved
        await asyncio.gather(
            self.view.refresh(self._tab_filters()),
            self.refresh_stats(),
            self.refresh_charts(),
        )

    # -- queries -----------------------------------------------------------

    def available_actions(self, request: ReorderRequest) -> list[ReorderEvent]:
        """Empty for terminal requests, which are view only."""
        return self.state_machine.get_valid_events(request.status)

    async def view_details(self, request_id: int) -> ActionResult[ReorderRequest]:
        async def operation() -> ActionResult[ReorderRequest]:
            request = await self.collection.fetch_one(request_id)
            if request is None:
                return ActionResult.rate_limited(self.collection.retry_after)
            self.view.recompute()
            return ActionResult.ok(request)

        return await run_action(f"Load reorder request {request_id}", operation())

    # -- create ------------------------------------------------------------

    async def create(self, data: Union[ReorderCreate, dict]) -> ActionResult[ReorderRequest]:
        async def operation() -> ActionResult[ReorderRequest]:
            body = validate_form(ReorderCreate, data)
            if not body.requested_by:
                body = body.model_copy(update={"requested_by": self.settings.ACTING_ADMIN_NAME})
            response = await self._client.post(
                REORDER_ENDPOINT.path, json=body.model_dump(mode="json")
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            data_out = response.data or {}
            raw = data_out.get("request")
            created = ReorderRequest.model_validate(raw) if raw else None
            number = data_out.get("request_number") or (created.request_number if created else "")
            logger.info(f"Reorder request {number} created")
            await self._refresh_after_mutation()
            return ActionResult.ok(created, message=f"Reorder request {number} created successfully")

        return await run_action("Create reorder request", operation())

    # -- transitions -------------------------------------------------------

    async def approve(self, request: ReorderRequest) -> ActionResult[ReorderRequest]:
        async def operation() -> ActionResult[ReorderRequest]:
            transition = self.state_machine.require(request.status, ReorderEvent.APPROVE)
            body = ApproveRequest(approved_by=self.settings.ACTING_ADMIN_NAME)
            response = await self._client.put(
                f"{REORDER_ENDPOINT.item_path(request.id)}/approve",
                json=body.model_dump(),
            )
            return await self._complete(
                request,
                transition,
                response,
                {"approved_by": body.approved_by},
                f"Request {request.request_number} approved",
            )

        return await run_action(f"Approve reorder request {request.id}", operation())

    async def reject(
        self, request: ReorderRequest, reason: Optional[str] = None
    ) -> ActionResult[ReorderRequest]:
        async def operation() -> ActionResult[ReorderRequest]:
            transition = self.state_machine.require(request.status, ReorderEvent.REJECT)
            body = RejectRequest(
                rejected_by=self.settings.ACTING_ADMIN_NAME,
                rejection_reason=(reason or "").strip() or self.settings.DEFAULT_REJECTION_REASON,
            )
            response = await self._client.put(
                f"{REORDER_ENDPOINT.item_path(request.id)}/reject",
                json=body.model_dump(),
            )
            return await self._complete(
                request,
                transition,
                response,
                {"rejection_reason": body.rejection_reason},
                f"Request {request.request_number} rejected",
            )

        return await run_action(f"Reject reorder request {request.id}", operation())

    async def receive(
        self, request: ReorderRequest, quantity_received: Any
    ) -> ActionResult[ReorderRequest]:
        async def operation() -> ActionResult[ReorderRequest]:
            transition = self.state_machine.require(request.status, ReorderEvent.RECEIVE)
            body = ReceiveRequest(quantity_received=parse_quantity_received(quantity_received))
            response = await self._client.put(
                f"{REORDER_ENDPOINT.item_path(request.id)}/receive",
                json=body.model_dump(),
            )
            return await self._complete(
                request,
                transition,
                response,
                {"quantity_received": body.quantity_received},
                f"Request {request.request_number} marked as received",
            )

        return await run_action(f"Receive reorder request {request.id}", operation())

    async def _complete(
        self,
        request: ReorderRequest,
        transition: Transition,
        response: ApiResponse,
        changes: dict[str, Any],
        message: str,
    ) -> ActionResult[ReorderRequest]:
        if response.rate_limited:
            return ActionResult.rate_limited(response.retry_after)

        raw = response.data.get("request") if isinstance(response.data, dict) else None
        if raw:
            updated = ReorderRequest.model_validate(raw)
            self.collection.replace_cached(updated)
        else:
            # Transition endpoints answer with a message only
            updated = self.collection.patch_cached(
                request.id, status=transition.to_status, **changes
            ) or request.model_copy(update={"status": transition.to_status, **changes})

        self.state_machine.record(request.request_number, transition)
        self.view.recompute()
        await self._refresh_after_mutation()
        return ActionResult.ok(updated, message=message)
