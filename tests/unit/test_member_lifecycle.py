"""
Unit tests for the member lifecycle controller and its forms.
"""

from datetime import date

import pytest
import pytest_asyncio

from gymdesk.core.enums import (
    ErrorKind,
    FreezeDuration,
    FreezeReason,
    MembershipPlan,
    MemberStatus,
    PaymentStanding,
)
from gymdesk.services.member_lifecycle import (
    INVALID_CREDENTIALS_MESSAGE,
    CancellationForm,
    FreezeForm,
    MemberEvent,
    MemberLifecycleController,
    ReactivationForm,
    compute_freeze_end_date,
    get_member_state_machine,
)
from gymdesk.utils.errors import FormValidationError
from tests.factories import make_member


ROSTER = [
    make_member(1, name="Alice"),
    make_member(2, name="Bob", status="frozen"),
    make_member(3, name="Carol", status="cancelled"),
    make_member(4, name="Dan", status="inactive"),
]


@pytest.fixture
def seeded(backend):
    backend.add("GET", "/members", {"members": ROSTER})
    backend.add(
        "GET",
        "/members/stats",
        {"activeMembers": 1, "newThisMonth": 0, "frozenMembers": 1, "cancelledMembers": 1},
    )
    backend.add("GET", "/locations", [{"id": 1, "name": "Downtown"}, {"id": 2, "name": "Uptown"}])
    return backend


@pytest_asyncio.fixture
async def controller(client, seeded, settings):
    controller = MemberLifecycleController(client, settings=settings)
    await controller.load()
    seeded.requests.clear()
    return controller


def cached(controller, member_id):
    return controller.collection.get_cached(member_id)


def paths_after(backend, method, path):
    """Request lines issued after the first matching request."""
    lines = [f"{r.method} {r.url.path}" for r in backend.requests]
    index = lines.index(f"{method} /api{path}")
    return lines[index + 1:]


# =============================================================================
# Forms
# =============================================================================


class TestFreezeForm:
    """Tests for freeze end date derivation."""

    def test_fourteen_days_from_new_year(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration=FreezeDuration.TWO_WEEKS)
        assert form.end_date == date(2024, 1, 15)
        assert form.length_days == 14

    def test_duration_accepts_raw_value(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration="7")
        assert form.duration == FreezeDuration.ONE_WEEK
        assert form.end_date == date(2024, 1, 8)

    def test_start_change_recomputes(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration="30")
        form.set_start_date(date(2024, 2, 1))
        assert form.end_date == date(2024, 3, 2)

    def test_duration_change_recomputes(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration="30")
        form.set_duration("90")
        assert form.end_date == date(2024, 3, 31)

    def test_fixed_end_date_is_not_editable(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration="14")
        assert form.end_date_editable is False
        with pytest.raises(FormValidationError):
            form.set_end_date(date(2024, 5, 1))

    def test_custom_end_date_is_manual(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration=FreezeDuration.CUSTOM)
        assert form.end_date is None
        form.set_end_date(date(2024, 1, 20))
        form.set_start_date(date(2024, 1, 5))
        assert form.end_date == date(2024, 1, 20)

    def test_custom_without_end_date_is_rejected(self):
        form = FreezeForm(start_date=date(2024, 1, 1), duration="custom")
        with pytest.raises(FormValidationError, match="Please select a freeze end date"):
            form.to_request()

    def test_end_before_start_is_rejected(self):
        form = FreezeForm(start_date=date(2024, 1, 10), duration="custom")
        form.set_end_date(date(2024, 1, 5))
        with pytest.raises(FormValidationError, match="after the start date"):
            form.to_request()

    def test_compute_freeze_end_date_custom(self):
        assert compute_freeze_end_date(date(2024, 1, 1), FreezeDuration.CUSTOM) is None


class TestCancellationForm:
    """Tests for cancel form validation order."""

    def test_reason_checked_first(self):
        form = CancellationForm(confirmed=False)
        with pytest.raises(FormValidationError, match="reason for cancellation"):
            form.validate()

    def test_credentials_checked_second(self):
        form = CancellationForm(reason="Relocation", admin_username="admin", confirmed=False)
        with pytest.raises(FormValidationError, match="admin username and password"):
            form.validate()

    def test_confirmation_checked_last(self):
        form = CancellationForm(
            reason="Relocation", admin_username="admin", admin_password="pw", confirmed=False
        )
        with pytest.raises(FormValidationError, match="confirmation checkbox"):
            form.validate()

    def test_unknown_reason(self):
        form = CancellationForm(reason="Bored", admin_username="a", admin_password="b", confirmed=True)
        with pytest.raises(FormValidationError, match="Unknown cancellation reason"):
            form.validate()


class TestReactivationForm:
    """Tests for reactivate form validation."""

    def test_requires_reason(self):
        with pytest.raises(FormValidationError, match="reason for reactivation"):
            ReactivationForm(confirmed=True).to_request()

    def test_requires_start_date(self):
        form = ReactivationForm(reason="Ready to Resume", start_date=None, confirmed=True)
        with pytest.raises(FormValidationError, match="restart date"):
            form.to_request()

    def test_requires_confirmation(self):
        with pytest.raises(FormValidationError, match="confirmation checkbox"):
            ReactivationForm(reason="Ready to Resume").to_request()


# =============================================================================
# State machine
# =============================================================================


class TestMemberStateMachine:
    """Tests for allowed member actions."""

    def test_actions_per_status(self):
        machine = get_member_state_machine()
        assert machine.get_valid_events(MemberStatus.ACTIVE) == [MemberEvent.FREEZE, MemberEvent.CANCEL]
        assert machine.get_valid_events(MemberStatus.FROZEN) == [MemberEvent.UNFREEZE, MemberEvent.CANCEL]
        assert machine.get_valid_events(MemberStatus.CANCELLED) == [MemberEvent.REACTIVATE]

    def test_inactive_has_no_actions(self):
        assert get_member_state_machine().get_valid_events(MemberStatus.INACTIVE) == []
        assert get_member_state_machine().is_terminal(MemberStatus.INACTIVE)


# =============================================================================
# Controller
# =============================================================================


class TestLoad:
    """Tests for page seeding."""

    @pytest.mark.asyncio
    async def test_load_populates_superset_stats_and_locations(self, controller):
        assert len(controller.collection.superset) == 4
        assert controller.stats.active_members == 1
        assert controller.stats.frozen_members == 1
        assert [loc.name for loc in controller.locations] == ["Downtown", "Uptown"]

    @pytest.mark.asyncio
    async def test_inactive_member_has_no_actions(self, controller):
        assert controller.available_actions(cached(controller, 4)) == []


class TestFreeze:
    """Tests for freezing a member."""

    @pytest.mark.asyncio
    async def test_freeze_sends_dates_and_refreshes_after(self, controller, backend):
        backend.add(
            "POST",
            "/members/1/freeze",
            {
                "message": "Member frozen",
                "member": make_member(
                    1,
                    status="frozen",
                    freeze_start_date="2024-01-01T00:00:00.000Z",
                    freeze_end_date="2024-01-15T00:00:00.000Z",
                    freeze_reason="Travel",
                ),
            },
        )
        form = FreezeForm(start_date=date(2024, 1, 1), duration="14", reason=FreezeReason.TRAVEL)

        result = await controller.freeze(cached(controller, 1), form)

        assert result.success is True
        assert result.entity.status == MemberStatus.FROZEN
        assert result.entity.freeze_end_date == date(2024, 1, 15)
        request = backend.calls("POST", "/members/1/freeze")[0]
        assert backend.body(request) == {
            "freeze_start_date": "2024-01-01",
            "freeze_end_date": "2024-01-15",
            "freeze_reason": "Travel",
            "notes": None,
        }
        assert set(paths_after(backend, "POST", "/members/1/freeze")) == {
            "GET /api/members",
            "GET /api/members/stats",
        }

    @pytest.mark.asyncio
    async def test_freeze_from_cancelled_is_rejected_locally(self, controller, backend):
        result = await controller.freeze(cached(controller, 3), FreezeForm(duration="14"))
        assert result.success is False
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert result.error == "Cannot freeze a member with status 'cancelled'"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_invalid_form_sends_nothing(self, controller, backend):
        result = await controller.freeze(cached(controller, 1), FreezeForm(duration="custom"))
        assert result.success is False
        assert result.error_kind == ErrorKind.VALIDATION
        assert result.field == "freeze_end_date"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_server_failure_leaves_status_unchanged(self, controller, backend):
        backend.add("POST", "/members/1/freeze", {"error": "Member already frozen"}, status=400)

        result = await controller.freeze(cached(controller, 1), FreezeForm(duration="14"))

        assert result.success is False
        assert result.error == "Member already frozen"
        assert result.status_code == 400
        assert cached(controller, 1).status == MemberStatus.ACTIVE
        assert [r.method for r in backend.requests] == ["POST"]

    @pytest.mark.asyncio
    async def test_rate_limited_freeze(self, controller, backend):
        backend.add(
            "POST", "/members/1/freeze", {"error": "Too many requests", "retryAfter": "15 minutes"},
            status=429,
        )
        result = await controller.freeze(cached(controller, 1), FreezeForm(duration="14"))
        assert result.is_rate_limited
        assert result.error == "Too many requests. Please try again in 15 minutes."
        assert cached(controller, 1).status == MemberStatus.ACTIVE


class TestUnfreeze:
    """Tests for the two-step unfreeze."""

    @pytest.mark.asyncio
    async def test_confirm_without_request_sends_nothing(self, controller, backend):
        result = await controller.confirm_unfreeze(cached(controller, 2))
        assert result.success is False
        assert result.error == "Please confirm the unfreeze first"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_request_then_confirm(self, controller, backend):
        backend.add("POST", "/members/2/unfreeze", {"member": make_member(2, status="active")})
        member = cached(controller, 2)

        opened = controller.request_unfreeze(member)
        assert opened.success is True
        assert controller.pending_unfreeze == 2
        assert backend.requests == []

        result = await controller.confirm_unfreeze(member)

        assert result.success is True
        assert result.entity.status == MemberStatus.ACTIVE
        assert controller.pending_unfreeze is None
        assert len(backend.calls("POST", "/members/2/unfreeze")) == 1

    @pytest.mark.asyncio
    async def test_dismiss_cancels_confirmation(self, controller, backend):
        member = cached(controller, 2)
        controller.request_unfreeze(member)
        controller.dismiss_unfreeze()
        result = await controller.confirm_unfreeze(member)
        assert result.success is False
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_unfreeze_active_member_is_invalid(self, controller):
        result = controller.request_unfreeze(cached(controller, 1))
        assert result.success is False
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert controller.pending_unfreeze is None


class TestCancel:
    """Tests for the soft delete flow."""

    def form(self, **overrides):
        values = {
            "reason": "Relocation",
            "notes": "Moving away",
            "admin_username": "admin",
            "admin_password": "secret",
            "confirmed": True,
        }
        values.update(overrides)
        return CancellationForm(**values)

    @pytest.mark.asyncio
    async def test_unchecked_confirmation_sends_nothing(self, controller, backend):
        result = await controller.cancel_membership(cached(controller, 1), self.form(confirmed=False))
        assert result.success is False
        assert result.error == "Please check the confirmation checkbox"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_bad_credentials_never_delete(self, controller, backend):
        backend.add("POST", "/admin/verify-password", {"verified": False})

        result = await controller.cancel_membership(cached(controller, 1), self.form())

        assert result.success is False
        assert result.error_kind == ErrorKind.CREDENTIALS
        assert result.error == INVALID_CREDENTIALS_MESSAGE
        assert backend.calls("DELETE") == []
        assert cached(controller, 1).status == MemberStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_unauthorized_verification_never_deletes(self, controller, backend):
        backend.add("POST", "/admin/verify-password", {"error": "Invalid credentials"}, status=401)
        result = await controller.cancel_membership(cached(controller, 1), self.form())
        assert result.error_kind == ErrorKind.CREDENTIALS
        assert backend.calls("DELETE") == []

    @pytest.mark.asyncio
    async def test_verified_cancel_deletes_and_refreshes(self, controller, backend):
        backend.add("POST", "/admin/verify-password", {"verified": True})
        backend.add("DELETE", "/members/2", {"success": True, "message": "Member cancelled"})
        backend.add(
            "GET", "/members", {"members": [ROSTER[0], make_member(2, status="cancelled"), *ROSTER[2:]]}
        )

        result = await controller.cancel_membership(cached(controller, 2), self.form())

        assert result.success is True
        assert result.entity.status == MemberStatus.CANCELLED
        verify = backend.calls("POST", "/admin/verify-password")[0]
        assert backend.body(verify) == {"username": "admin", "password": "secret"}
        delete = backend.calls("DELETE", "/members/2")[0]
        assert backend.body(delete) == {"reason": "Relocation", "notes": "Moving away"}
        assert delete.headers["X-Admin-Username"] == "admin"
        assert "GET /api/members" in paths_after(backend, "DELETE", "/members/2")
        assert cached(controller, 2).status == MemberStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_cancelled_member_is_invalid(self, controller, backend):
        result = await controller.cancel_membership(cached(controller, 3), self.form())
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert backend.requests == []


class TestReactivate:
    """Tests for reactivating a cancelled member."""

    @pytest.mark.asyncio
    async def test_reactivate_sends_reason_and_restart_date(self, controller, backend):
        backend.add("POST", "/members/3/reactivate", {"member": make_member(3, status="active")})
        form = ReactivationForm(reason="Ready to Resume", start_date=date(2024, 6, 1), confirmed=True)

        result = await controller.reactivate(cached(controller, 3), form)

        assert result.success is True
        request = backend.calls("POST", "/members/3/reactivate")[0]
        assert backend.body(request) == {
            "reason": "Ready to Resume",
            "start_date": "2024-06-01",
            "notes": None,
        }

    @pytest.mark.asyncio
    async def test_payment_method_for_dialog(self, controller, backend):
        backend.add("GET", "/members/3/payment-method", {"payment_method": None})
        result = await controller.load_reactivation_payment_method(cached(controller, 3))
        assert result.success is True
        assert result.entity is None

    @pytest.mark.asyncio
    async def test_reactivate_active_member_is_invalid(self, controller, backend):
        form = ReactivationForm(reason="Ready to Resume", confirmed=True)
        result = await controller.reactivate(cached(controller, 1), form)
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert backend.requests == []


class TestCreateAndEdit:
    """Tests for member create and update."""

    @pytest.mark.asyncio
    async def test_create_fetches_new_member(self, controller, backend):
        backend.add("POST", "/members", {"success": True, "id": 5, "message": "Member created"})
        backend.add("GET", "/members/5", make_member(5, name="Eve"))

        result = await controller.create_member(
            {
                "name": "Eve",
                "email": "eve@example.com",
                "phone": "555-0199",
                "location_id": 1,
                "plan": "Premium",
            }
        )

        assert result.success is True
        assert result.entity.name == "Eve"
        assert paths_after(backend, "POST", "/members")[0] == "GET /api/members/5"

    @pytest.mark.asyncio
    async def test_create_with_invalid_email_sends_nothing(self, controller, backend):
        result = await controller.create_member(
            {"name": "Eve", "email": "not-an-email", "phone": "1", "location_id": 1, "plan": "Basic"}
        )
        assert result.success is False
        assert result.field == "email"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_update_replaces_cached_member(self, controller, backend):
        backend.add("PUT", "/members/1", {"member": make_member(1, name="Alicia", plan="Elite")})
        backend.add("GET", "/members", {"members": [make_member(1, name="Alicia", plan="Elite"), *ROSTER[1:]]})

        result = await controller.update_member(
            cached(controller, 1),
            {"name": "Alicia", "email": "member1@example.com", "location_id": 1, "plan": "Elite"},
        )

        assert result.success is True
        assert cached(controller, 1).name == "Alicia"

    @pytest.mark.asyncio
    async def test_update_without_entity_applies_cleared_fields(self, controller, backend):
        backend.add("PUT", "/members/1", {"success": True, "message": "Member updated"})
        member = cached(controller, 1).model_copy(
            update={"notes": "Prefers mornings", "emergency_contact": "Jo 555-0199"}
        )

        result = await controller.update_member(
            member,
            {"name": "Alicia", "email": "member1@example.com", "location_id": 1, "plan": "Premium"},
        )

        assert result.success is True
        assert result.entity.name == "Alicia"
        assert result.entity.plan == MembershipPlan.PREMIUM
        assert result.entity.notes is None
        assert result.entity.emergency_contact is None
        assert result.entity.phone is None


class TestPaymentsAndCheckIns:
    """Tests for billing and attendance helpers."""

    @pytest.mark.asyncio
    async def test_payment_summary_overdue(self, controller, backend):
        backend.add(
            "GET",
            "/members/1/payments",
            {"payments": [{"id": 1, "amount": "30.00", "payment_date": "2024-01-01", "status": "success"}]},
        )
        result = await controller.payment_summary(cached(controller, 1), today=date(2024, 3, 1))
        assert result.success is True
        assert result.entity.standing == PaymentStanding.OVERDUE
        assert result.entity.next_due_date == date(2024, 2, 1)

    @pytest.mark.asyncio
    async def test_record_payment(self, controller, backend):
        backend.add(
            "POST",
            "/members/1/payments",
            {"payment": {"id": 9, "amount": "30.00", "payment_date": "2024-03-01", "payment_method": "Cash"}},
        )
        result = await controller.record_payment(
            1, {"amount": "30.00", "payment_method": "Cash", "payment_date": date(2024, 3, 1)}
        )
        assert result.success is True
        body = backend.body(backend.calls("POST", "/members/1/payments")[0])
        assert body["amount"] == "30.00"
        assert body["status"] == "success"

    @pytest.mark.asyncio
    async def test_invalid_card_sends_nothing(self, controller, backend):
        result = await controller.update_payment_method(
            1,
            {
                "card_type": "Visa",
                "last_four": "42",
                "expiry_month": 4,
                "expiry_year": 2030,
                "cardholder_name": "Alice",
            },
        )
        assert result.success is False
        assert result.field == "last_four"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_frozen_member_cannot_check_in(self, controller, backend):
        result = await controller.record_check_in(cached(controller, 2))
        assert result.success is False
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_check_in_history(self, controller, backend):
        backend.add(
            "GET",
            "/members/1/check-ins",
            {
                "member_id": 1,
                "member_name": "Alice",
                "check_ins": [
                    {"id": 1, "check_in_time": "2024-03-01T07:30:00.000Z", "location_id": 1,
                     "location_name": "Downtown"},
                ],
                "total": 12,
                "showing": 1,
            },
        )
        result = await controller.check_in_history(1)
        assert result.entity.total == 12
        assert result.entity.check_ins[0].location_name == "Downtown"
