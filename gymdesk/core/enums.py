"""
Core Enumerations for the Gym Admin Dashboard.

Every enum that drives sorting or styling carries exactly one canonical
rank table, defined next to it and read through ``rank_of``.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Mapping


def rank_of(ranks: Mapping[Any, int], value: Any) -> int:
    """Look up a value in a rank table. Unknown values rank 0."""
    if value is None:
        return 0
    return ranks.get(value, 0)


def enum_value(value: Any) -> Any:
    """Raw value of an enum member; backend strings we don't know pass through."""
    return value.value if isinstance(value, Enum) else value


# =============================================================================
# Membership Enums
# =============================================================================


class MembershipPlan(str, Enum):
    """Membership plan tiers."""

    BASIC = "Basic"
    PREMIUM = "Premium"
    ELITE = "Elite"

    @property
    def monthly_cost(self) -> Decimal:
        return PLAN_MONTHLY_COST[self]

    @property
    def rank(self) -> int:
        return rank_of(PLAN_RANK, self)


PLAN_MONTHLY_COST: dict[MembershipPlan, Decimal] = {
    MembershipPlan.BASIC: Decimal("30.00"),
    MembershipPlan.PREMIUM: Decimal("50.00"),
    MembershipPlan.ELITE: Decimal("75.00"),
}

PLAN_RANK: dict[MembershipPlan, int] = {
    MembershipPlan.BASIC: 1,
    MembershipPlan.PREMIUM: 2,
    MembershipPlan.ELITE: 3,
}


def plan_monthly_cost(plan: Any) -> Decimal:
    """Monthly cost of a plan. Plans outside the known tiers cost 0."""
    return PLAN_MONTHLY_COST.get(plan, Decimal("0.00"))


class MemberStatus(str, Enum):
    """Member account status.

    State Machine Transitions:
    ACTIVE -> FROZEN (freeze)
    FROZEN -> ACTIVE (unfreeze)
    ACTIVE | FROZEN -> CANCELLED (cancel, soft delete)
    CANCELLED -> ACTIVE (reactivate)

    INACTIVE is a legacy value. It is displayed like CANCELLED and has no
    transitions.
    """

    ACTIVE = "active"
    FROZEN = "frozen"
    CANCELLED = "cancelled"
    INACTIVE = "inactive"

    @property
    def rank(self) -> int:
        return rank_of(MEMBER_STATUS_RANK, self)

    @property
    def display_status(self) -> "MemberStatus":
        """Status used for badges and labels."""
        if self == MemberStatus.INACTIVE:
            return MemberStatus.CANCELLED
        return self


# INACTIVE is deliberately absent and ranks 0
MEMBER_STATUS_RANK: dict[MemberStatus, int] = {
    MemberStatus.ACTIVE: 1,
    MemberStatus.FROZEN: 2,
    MemberStatus.CANCELLED: 3,
}

MEMBER_STATUS_COLORS: dict[MemberStatus, str] = {
    MemberStatus.ACTIVE: "green",
    MemberStatus.FROZEN: "orange",
    MemberStatus.CANCELLED: "gray",
    MemberStatus.INACTIVE: "gray",
}


class FreezeDuration(str, Enum):
    """Freeze length options offered on the freeze form."""

    ONE_WEEK = "7"
    TWO_WEEKS = "14"
    ONE_MONTH = "30"
    TWO_MONTHS = "60"
    THREE_MONTHS = "90"
    CUSTOM = "custom"

    @property
    def days(self) -> int | None:
        """Number of days, or None for a manually entered end date."""
        if self == FreezeDuration.CUSTOM:
            return None
        return int(self.value)

    @property
    def label(self) -> str:
        if self == FreezeDuration.CUSTOM:
            return "Custom"
        return f"{self.value} days"


class FreezeReason(str, Enum):
    """Allowed reasons for freezing a membership."""

    MEDICAL = "Medical"
    INJURY = "Injury"
    TRAVEL = "Travel"
    FINANCIAL = "Financial"
    PERSONAL = "Personal"
    OTHER = "Other"


class CancellationReason(str, Enum):
    """Allowed reasons for cancelling (soft deleting) a membership."""

    RELOCATION = "Relocation"
    FINANCIAL = "Financial"
    MEDICAL = "Medical"
    DISSATISFIED = "Dissatisfied with Service"
    SCHEDULE_CONFLICT = "Schedule Conflict"
    SWITCHING_GYMS = "Switching Gyms"
    OTHER = "Other"


class ReactivationReason(str, Enum):
    """Allowed reasons for reactivating a cancelled membership."""

    RESOLVED_PREVIOUS_ISSUE = "Resolved Previous Issue"
    READY_TO_RESUME = "Ready to Resume"
    FINANCES_IMPROVED = "Financial Situation Improved"
    NEW_FITNESS_GOALS = "New Fitness Goals"
    MISSED_THE_GYM = "Missed the Gym"
    SPECIAL_OFFER = "Special Offer"
    OTHER = "Other"


# =============================================================================
# Payment Enums
# =============================================================================


class PaymentStatus(str, Enum):
    """Status of a recorded payment."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    REFUNDED = "refunded"


PAYMENT_STATUS_COLORS: dict[PaymentStatus, str] = {
    PaymentStatus.SUCCESS: "green",
    PaymentStatus.FAILED: "red",
    PaymentStatus.PENDING: "orange",
    PaymentStatus.REFUNDED: "gray",
}


class PaymentMethodLabel(str, Enum):
    """How a recorded payment was made."""

    CASH = "Cash"
    CHEQUE = "Cheque"
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"
    OTHER = "Other"


class CardType(str, Enum):
    """Card brands for the payment method on file."""

    VISA = "Visa"
    MASTERCARD = "Mastercard"
    AMEX = "Amex"
    DISCOVER = "Discover"
    OTHER = "Other"

    @classmethod
    def _missing_(cls, value: object) -> "CardType":
        return cls.OTHER


class PaymentStanding(str, Enum):
    """Billing standing shown in the payment summary."""

    NEW_MEMBER = "new_member"
    CURRENT = "current"
    OVERDUE = "overdue"


# =============================================================================
# Inventory Reorder Enums
# =============================================================================


class ReorderStatus(str, Enum):
    """Reorder request lifecycle status.

    State Machine Transitions:
    PENDING -> APPROVED | REJECTED
    APPROVED -> RECEIVED
    REJECTED and RECEIVED are terminal.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RECEIVED = "received"

    @property
    def rank(self) -> int:
        return rank_of(REORDER_STATUS_RANK, self)


# Same priority the backend uses when ordering the request list
REORDER_STATUS_RANK: dict[ReorderStatus, int] = {
    ReorderStatus.PENDING: 1,
    ReorderStatus.APPROVED: 2,
    ReorderStatus.RECEIVED: 3,
    ReorderStatus.REJECTED: 4,
}

REORDER_STATUS_COLORS: dict[ReorderStatus, str] = {
    ReorderStatus.PENDING: "#f59e0b",
    ReorderStatus.APPROVED: "#10b981",
    ReorderStatus.RECEIVED: "#3b82f6",
    ReorderStatus.REJECTED: "#ef4444",
}


# =============================================================================
# List View Enums
# =============================================================================


class SortDirection(str, Enum):
    """Sort direction for a list column."""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self == SortDirection.ASC else SortDirection.ASC


class ColumnKind(str, Enum):
    """Comparator family used when sorting a column."""

    NUMERIC_ID = "numeric_id"  # "M-10" compared as 10
    TEXT = "text"  # case-insensitive
    RANK = "rank"  # canonical rank table
    DATE = "date"  # underlying instant
    NUMBER = "number"


class ViewStatus(str, Enum):
    """Render state of a collection view."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to the UI."""

    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    REJECTED = "rejected"
    NETWORK = "network"
    CREDENTIALS = "credentials"
    INVALID_TRANSITION = "invalid_transition"
