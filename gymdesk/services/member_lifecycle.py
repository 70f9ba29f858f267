"""
Member Lifecycle Controller.
Source: Members page workflows (freeze, unfreeze, cancel, reactivate)

State Diagram:
    ACTIVE -> FROZEN (freeze)
    FROZEN -> ACTIVE (unfreeze, two-step confirmation)
    ACTIVE | FROZEN -> CANCELLED (cancel, admin re-authentication)
    CANCELLED -> ACTIVE (reactivate)
    INACTIVE has no actions.

Every action validates locally first, issues exactly one mutating request,
and on success replaces the cached member and re-fetches the list and the
member stats. Failures leave the cached member untouched.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Optional, Union

from gymdesk.core.config import DashboardSettings, get_settings
from gymdesk.core.enums import (
    CancellationReason,
    FreezeDuration,
    FreezeReason,
    MemberStatus,
    ReactivationReason,
    enum_value,
)
from gymdesk.gateways.api_client import ApiResponse, DashboardApiClient
from gymdesk.schemas.common import Location
from gymdesk.schemas.member import (
    AdminCredentials,
    CancellationRequest,
    CheckIn,
    CheckInHistory,
    FreezeRequest,
    Member,
    MemberCreate,
    MemberStats,
    MemberUpdate,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentMethodUpdate,
    ReactivateRequest,
)
from gymdesk.services.collection import MEMBER_ENDPOINT, RemoteCollection
from gymdesk.services.list_view import (
    MEMBER_VIEW_SCHEMA,
    CollectionView,
    with_id_prefixes,
)
from gymdesk.services.payments import PaymentSummary, summarize_payments
from gymdesk.services.reporting import ReportingService
from gymdesk.services.results import ActionResult, run_action
from gymdesk.services.state_machine import StateMachine, Transition
from gymdesk.utils.errors import (
    ApiError,
    ApiRejectedError,
    CredentialVerificationError,
    FormValidationError,
    InvalidTransitionError,
    validate_form,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = (
    "Invalid admin credentials. Please check your username and password."
)


class MemberEvent(str, Enum):
    """Events that trigger member status transitions."""

    FREEZE = "freeze"
    UNFREEZE = "unfreeze"
    CANCEL = "cancel"
    REACTIVATE = "reactivate"


MEMBER_TRANSITIONS: list[Transition] = [
    Transition(MemberStatus.ACTIVE, MemberStatus.FROZEN, MemberEvent.FREEZE),
    Transition(
        MemberStatus.FROZEN,
        MemberStatus.ACTIVE,
        MemberEvent.UNFREEZE,
        requires_confirmation=True,
    ),
    Transition(
        MemberStatus.ACTIVE,
        MemberStatus.CANCELLED,
        MemberEvent.CANCEL,
        requires_reason=True,
        requires_confirmation=True,
        requires_admin_verification=True,
    ),
    Transition(
        MemberStatus.FROZEN,
        MemberStatus.CANCELLED,
        MemberEvent.CANCEL,
        requires_reason=True,
        requires_confirmation=True,
        requires_admin_verification=True,
    ),
    Transition(
        MemberStatus.CANCELLED,
        MemberStatus.ACTIVE,
        MemberEvent.REACTIVATE,
        requires_reason=True,
        requires_confirmation=True,
    ),
]


_state_machine: Optional[StateMachine] = None


def get_member_state_machine() -> StateMachine:
    """Get singleton member state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = StateMachine(MEMBER_TRANSITIONS, "member")
    return _state_machine


# =============================================================================
# Forms
# =============================================================================


def compute_freeze_end_date(start: date, duration: FreezeDuration) -> Optional[date]:
    """End date for a fixed duration. None for a custom duration."""
    days = duration.days
    if days is None:
        return None
    return start + timedelta(days=days)


@dataclass
class FreezeForm:
    """
    Freeze form state.

    For a fixed duration the end date is derived from the start date and is
    recomputed whenever either changes. For a custom duration the end date is
    entered by hand and never recomputed.
    """

    start_date: date = field(default_factory=date.today)
    duration: FreezeDuration = FreezeDuration.ONE_MONTH
    end_date: Optional[date] = None
    reason: Optional[FreezeReason] = None
    notes: str = ""

    def __post_init__(self) -> None:
        self.duration = FreezeDuration(self.duration)
        self._recompute()

    @property
    def end_date_editable(self) -> bool:
        return self.duration == FreezeDuration.CUSTOM

    def _recompute(self) -> None:
        if not self.end_date_editable:
            self.end_date = compute_freeze_end_date(self.start_date, self.duration)

    def set_duration(self, duration: Union[FreezeDuration, str]) -> None:
        self.duration = FreezeDuration(duration)
        self._recompute()

    def set_start_date(self, start: date) -> None:
        self.start_date = start
        self._recompute()

    def set_end_date(self, end: Optional[date]) -> None:
        if not self.end_date_editable:
            raise FormValidationError(
                "End date is calculated from the duration", field="freeze_end_date"
            )
        self.end_date = end

    @property
    def length_days(self) -> Optional[int]:
        if self.end_date is None:
            return None
        return (self.end_date - self.start_date).days

    def to_request(self) -> FreezeRequest:
        if self.end_date is None:
            raise FormValidationError("Please select a freeze end date", field="freeze_end_date")
        return validate_form(
            FreezeRequest,
            {
                "freeze_start_date": self.start_date,
                "freeze_end_date": self.end_date,
                "freeze_reason": self.reason or None,
                "notes": self.notes.strip() or None,
            },
        )


@dataclass
class CancellationForm:
    """Cancel membership form. Checked in order: reason, credentials, confirmation."""

    reason: Optional[Union[CancellationReason, str]] = None
    notes: str = ""
    admin_username: str = ""
    admin_password: str = ""
    confirmed: bool = False

    def validate(self) -> tuple[CancellationRequest, AdminCredentials]:
        if not self.reason:
            raise FormValidationError("Please select a reason for cancellation", field="reason")
        try:
            reason = CancellationReason(self.reason)
        except ValueError:
            raise FormValidationError(
                f"Unknown cancellation reason: {self.reason}", field="reason"
            ) from None
        if not self.admin_username.strip() or not self.admin_password:
            raise FormValidationError(
                "Please enter admin username and password", field="admin_password"
            )
        if not self.confirmed:
            raise FormValidationError(
                "Please check the confirmation checkbox", field="confirmed"
            )
        request = CancellationRequest(reason=reason, notes=self.notes.strip() or None)
        credentials = AdminCredentials(
            username=self.admin_username.strip(), password=self.admin_password
        )
        return request, credentials


@dataclass
class ReactivationForm:
    """Reactivate membership form."""

    reason: Optional[Union[ReactivationReason, str]] = None
    start_date: Optional[date] = field(default_factory=date.today)
    notes: str = ""
    confirmed: bool = False

    def to_request(self) -> ReactivateRequest:
        if not self.reason:
            raise FormValidationError("Please select a reason for reactivation", field="reason")
        if self.start_date is None:
            raise FormValidationError("Please select a restart date", field="start_date")
        if not self.confirmed:
            raise FormValidationError(
                "Please check the confirmation checkbox", field="confirmed"
            )
        return validate_form(
            ReactivateRequest,
            {
                "reason": self.reason,
                "start_date": self.start_date,
                "notes": self.notes.strip() or None,
            },
        )


# =============================================================================
# Controller
# =============================================================================


class MemberLifecycleController:
    """
    Drives the members page: list view, stats, detail actions.

    Example:
        >>> controller = MemberLifecycleController(DashboardApiClient())
        >>> await controller.load()
        >>> result = await controller.freeze(member, FreezeForm(duration="14"))
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
            RemoteCollection(client, MEMBER_ENDPOINT),
            with_id_prefixes(MEMBER_VIEW_SCHEMA, {"id": self.settings.MEMBER_ID_PREFIX}),
        )
        self.reporting = reporting or ReportingService(client)
        self.state_machine = state_machine or get_member_state_machine()
        self.stats: Optional[MemberStats] = None
        self.locations: list[Location] = []
        self.pending_unfreeze: Optional[int] = None

    @property
    def collection(self) -> RemoteCollection:
        return self.view.collection

    # -- loading -----------------------------------------------------------

    async def load(self) -> None:
        """Seed the page: member superset, stats and locations."""
        await asyncio.gather(self.view.load(), self.refresh_stats(), self.load_locations())

    async def refresh_stats(self) -> Optional[MemberStats]:
        try:
            stats = await self.reporting.member_stats()
        except ApiError as e:
            logger.warning(f"Member stats refresh failed: {e.message}")
            return self.stats
        if stats is not None:
            self.stats = stats
        return self.stats

    async def load_locations(self) -> list[Location]:
        try:
            self.locations = await self.reporting.locations()
        except ApiError as e:
            logger.warning(f"Location list failed: {e.message}")
        return self.locations

    async def _refresh_after_mutation(self) -> None:
        # Only called once the mutating request has resolved
        await asyncio.gather(self.view.refresh(), self.refresh_stats())

    # -- queries -----------------------------------------------------------

    def available_actions(self, member: Member) -> list[MemberEvent]:
        return self.state_machine.get_valid_events(member.status)

    async def load_member(self, member_id: int) -> ActionResult[Member]:
        """Fetch one member with derived totals (total_check_ins)."""

        async def operation() -> ActionResult[Member]:
            member = await self.collection.fetch_one(member_id)
            if member is None:
                return ActionResult.rate_limited(self.collection.retry_after)
            self.view.recompute()
            return ActionResult.ok(member)

        return await run_action(f"Load member {member_id}", operation())

    # -- create / edit -----------------------------------------------------

    async def create_member(self, data: Union[MemberCreate, dict]) -> ActionResult[Member]:
        async def operation() -> ActionResult[Member]:
            body = validate_form(MemberCreate, data)
            response = await self._client.post("/members", json=body.model_dump(mode="json"))
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            new_id = (response.data or {}).get("id")
            member = await self.collection.fetch_one(new_id) if new_id is not None else None
            logger.info(f"Member created: {body.name} (ID: {new_id})")
            await self._refresh_after_mutation()
            return ActionResult.ok(member, message="Member created successfully")

        return await run_action("Create member", operation())

    async def update_member(
        self, member: Member, data: Union[MemberUpdate, dict]
    ) -> ActionResult[Member]:
        async def operation() -> ActionResult[Member]:
            body = validate_form(MemberUpdate, data)
            response = await self._client.put(
                MEMBER_ENDPOINT.item_path(member.id), json=body.model_dump(mode="json")
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            updated = self._member_from(response) or member.model_copy(
                update=body.model_dump()
            )
            self.view.replace_entity(updated)
            await self._refresh_after_mutation()
            return ActionResult.ok(updated, message="Member updated successfully")

        return await run_action(f"Update member {member.id}", operation())

    # -- transitions -------------------------------------------------------

    async def freeze(self, member: Member, form: FreezeForm) -> ActionResult[Member]:
        async def operation() -> ActionResult[Member]:
            transition = self.state_machine.require(member.status, MemberEvent.FREEZE)
            body = form.to_request()
            response = await self._client.post(
                f"{MEMBER_ENDPOINT.item_path(member.id)}/freeze",
                json=body.model_dump(mode="json"),
            )
            return await self._complete(member, transition, response, "Member frozen successfully")

        return await run_action(f"Freeze member {member.id}", operation())

    def request_unfreeze(self, member: Member) -> ActionResult[Member]:
        """First step of unfreeze: open the confirmation. No request is sent."""
        try:
            self.state_machine.require(member.status, MemberEvent.UNFREEZE)
        except InvalidTransitionError as e:
            return ActionResult.from_error(e)
        self.pending_unfreeze = member.id
        return ActionResult.ok(member, message=f"Unfreeze {member.name}?")

    def dismiss_unfreeze(self) -> None:
        self.pending_unfreeze = None

    async def confirm_unfreeze(self, member: Member) -> ActionResult[Member]:
        """Second step of unfreeze: issue the request."""

        async def operation() -> ActionResult[Member]:
            transition = self.state_machine.require(member.status, MemberEvent.UNFREEZE)
            if self.pending_unfreeze != member.id:
                raise FormValidationError("Please confirm the unfreeze first", field="confirmed")
            self.pending_unfreeze = None
            response = await self._client.post(f"{MEMBER_ENDPOINT.item_path(member.id)}/unfreeze")
            return await self._complete(member, transition, response, "Member unfrozen successfully")

        return await run_action(f"Unfreeze member {member.id}", operation())

    async def cancel_membership(self, member: Member, form: CancellationForm) -> ActionResult[Member]:
        """
        Soft delete: verify the admin first, then DELETE.

        The DELETE is never issued when validation or verification fails.
        """

        async def operation() -> ActionResult[Member]:
            transition = self.state_machine.require(member.status, MemberEvent.CANCEL)
            body, credentials = form.validate()

            verification = await self._verify_admin(credentials)
            if verification.rate_limited:
                return ActionResult.rate_limited(verification.retry_after)

            response = await self._client.delete(
                MEMBER_ENDPOINT.item_path(member.id),
                json=body.model_dump(mode="json"),
                headers=credentials.as_headers(),
            )
            return await self._complete(
                member, transition, response, "Member cancelled successfully"
            )

        return await run_action(f"Cancel member {member.id}", operation())

    async def _verify_admin(self, credentials: AdminCredentials) -> ApiResponse:
        try:
            response = await self._client.post(
                "/admin/verify-password", json=credentials.model_dump()
            )
        except ApiRejectedError as e:
            if e.status_code == 401:
                raise CredentialVerificationError(INVALID_CREDENTIALS_MESSAGE) from e
            raise
        if response.rate_limited:
            return response
        if not isinstance(response.data, dict) or response.data.get("verified") is not True:
            raise CredentialVerificationError(INVALID_CREDENTIALS_MESSAGE)
        logger.info(f"Admin '{credentials.username}' verified")
        return response

    async def load_reactivation_payment_method(self, member: Member) -> ActionResult[Optional[PaymentMethod]]:
        """Fresh payment method for the reactivation dialog."""
        return await self.get_payment_method(member.id)

    async def reactivate(self, member: Member, form: ReactivationForm) -> ActionResult[Member]:
        async def operation() -> ActionResult[Member]:
            transition = self.state_machine.require(member.status, MemberEvent.REACTIVATE)
            body = form.to_request()
            response = await self._client.post(
                f"{MEMBER_ENDPOINT.item_path(member.id)}/reactivate",
                json=body.model_dump(mode="json"),
            )
            return await self._complete(
                member, transition, response, "Member reactivated successfully"
            )

        return await run_action(f"Reactivate member {member.id}", operation())

    async def _complete(
        self,
        member: Member,
        transition: Transition,
        response: ApiResponse,
        message: str,
    ) -> ActionResult[Member]:
        if response.rate_limited:
            return ActionResult.rate_limited(response.retry_after)

        updated = self._member_from(response)
        if updated is None:
            # Endpoint returned no entity (soft delete)
            updated = self.collection.patch_cached(member.id, status=transition.to_status)
            if updated is None:
                updated = member.model_copy(update={"status": transition.to_status})
        else:
            self.collection.replace_cached(updated)

        self.state_machine.record(member.member_id, transition)
        self.view.recompute()
        await self._refresh_after_mutation()
        return ActionResult.ok(updated, message=message)

    @staticmethod
    def _member_from(response: ApiResponse) -> Optional[Member]:
        data = response.data
        if isinstance(data, dict) and isinstance(data.get("member"), dict):
            return Member.model_validate(data["member"])
        return None

    # -- payments and check-ins --------------------------------------------

    async def list_payments(self, member_id: int) -> ActionResult[list[Payment]]:
        async def operation() -> ActionResult[list[Payment]]:
            response = await self._client.get(f"{MEMBER_ENDPOINT.item_path(member_id)}/payments")
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            payments = [
                Payment.model_validate(p) for p in (response.data or {}).get("payments", [])
            ]
            return ActionResult.ok(payments)

        return await run_action(f"Load payments for member {member_id}", operation())

    async def record_payment(
        self, member_id: int, data: Union[PaymentCreate, dict]
    ) -> ActionResult[Payment]:
        async def operation() -> ActionResult[Payment]:
            body = validate_form(PaymentCreate, data)
            response = await self._client.post(
                f"{MEMBER_ENDPOINT.item_path(member_id)}/payments",
                json=body.model_dump(mode="json"),
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            raw = (response.data or {}).get("payment")
            payment = Payment.model_validate(raw) if raw else None
            logger.info(f"Payment of {body.amount} recorded for member {member_id}")
            return ActionResult.ok(payment, message="Payment recorded successfully")

        return await run_action(f"Record payment for member {member_id}", operation())

    async def get_payment_method(self, member_id: int) -> ActionResult[Optional[PaymentMethod]]:
        async def operation() -> ActionResult[Optional[PaymentMethod]]:
            response = await self._client.get(
                f"{MEMBER_ENDPOINT.item_path(member_id)}/payment-method"
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            raw = (response.data or {}).get("payment_method")
            return ActionResult.ok(PaymentMethod.model_validate(raw) if raw else None)

        return await run_action(f"Load payment method for member {member_id}", operation())

    async def update_payment_method(
        self, member_id: int, data: Union[PaymentMethodUpdate, dict]
    ) -> ActionResult[PaymentMethod]:
        """Replace the card on file wholesale."""

        async def operation() -> ActionResult[PaymentMethod]:
            body = validate_form(PaymentMethodUpdate, data)
            response = await self._client.put(
                f"{MEMBER_ENDPOINT.item_path(member_id)}/payment-method",
                json=body.model_dump(mode="json"),
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            raw = (response.data or {}).get("payment_method")
            method = PaymentMethod.model_validate(raw) if raw else PaymentMethod.model_validate(body.model_dump())
            return ActionResult.ok(method, message="Payment method updated successfully")

        return await run_action(f"Update payment method for member {member_id}", operation())

    async def payment_summary(
        self, member: Member, today: Optional[date] = None
    ) -> ActionResult[PaymentSummary]:
        result = await self.list_payments(member.id)
        if not result.success:
            return ActionResult(
                success=False,
                error=result.error,
                error_kind=result.error_kind,
                status_code=result.status_code,
                retry_after=result.retry_after,
            )
        summary = summarize_payments(
            member.plan,
            result.entity or [],
            today=today,
            overdue_after_days=self.settings.OVERDUE_AFTER_DAYS,
        )
        return ActionResult.ok(summary)

    async def check_in_history(self, member_id: int) -> ActionResult[CheckInHistory]:
        async def operation() -> ActionResult[CheckInHistory]:
            response = await self._client.get(f"{MEMBER_ENDPOINT.item_path(member_id)}/check-ins")
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            return ActionResult.ok(CheckInHistory.model_validate(response.data or {}))

        return await run_action(f"Load check-ins for member {member_id}", operation())

    async def record_check_in(self, member: Member, location_id: Optional[int] = None) -> ActionResult[CheckIn]:
        async def operation() -> ActionResult[CheckIn]:
            target = location_id or member.location_id
            if not target:
                raise FormValidationError("Please select a location", field="location_id")
            if member.status != MemberStatus.ACTIVE:
                raise FormValidationError(
                    f"Only active members can check in (status: {enum_value(member.status)})"
                )
            response = await self._client.post(
                f"{MEMBER_ENDPOINT.item_path(member.id)}/check-in",
                json={"location_id": target},
            )
            if response.rate_limited:
                return ActionResult.rate_limited(response.retry_after)
            raw: Any = (response.data or {}).get("check_in")
            check_in = CheckIn.model_validate(raw) if raw else None
            logger.info(f"Member {member.member_id} checked in at location {target}")
            return ActionResult.ok(check_in, message="Check-in recorded successfully")

        return await run_action(f"Check in member {member.id}", operation())
