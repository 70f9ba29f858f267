"""
Pydantic Schemas for Member Management.

Response schemas ignore unknown fields so that backend additions do not
break the dashboard. Request schemas validate before anything is sent.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from gymdesk.core.enums import (
    CancellationReason,
    CardType,
    FreezeReason,
    MembershipPlan,
    MemberStatus,
    PaymentMethodLabel,
    PaymentStatus,
    ReactivationReason,
    plan_monthly_cost,
)
from gymdesk.schemas.common import lenient_enum


def strip_id_prefix(value: Optional[str], prefix: str) -> Optional[int]:
    """Parse "M-10" (with prefix "M-") as 10. Returns None when unparsable."""
    if value is None:
        return None
    text = str(value)
    if prefix and text.startswith(prefix):
        text = text[len(prefix):]
    try:
        return int(text)
    except ValueError:
        return None


# =============================================================================
# Member
# =============================================================================


class Member(BaseModel):
    """Member as returned by GET /members and GET /members/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: int
    member_id: str = Field(..., description="Display identifier, e.g. M-10")
    name: str
    email: str
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    location_id: Optional[int] = None
    location_name: Optional[str] = None
    plan: lenient_enum(MembershipPlan)
    status: lenient_enum(MemberStatus)
    notes: Optional[str] = None
    created_at: datetime = Field(..., description="Join date")
    updated_at: Optional[datetime] = None
    freeze_start_date: Optional[date] = None
    freeze_end_date: Optional[date] = None
    freeze_reason: Optional[str] = None
    total_check_ins: Optional[int] = Field(
        None, description="Only present on single-member fetch"
    )

    @field_validator("freeze_start_date", "freeze_end_date", mode="before")
    @classmethod
    def date_from_timestamp(cls, v):
        """The backend sometimes serializes DATE columns as full timestamps."""
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v

    @property
    def numeric_id(self) -> Optional[int]:
        return strip_id_prefix(self.member_id, "M-")

    @property
    def monthly_cost(self) -> Decimal:
        return plan_monthly_cost(self.plan)

    @property
    def is_frozen(self) -> bool:
        return self.status == MemberStatus.FROZEN

    def days_active(self, now: Optional[datetime] = None) -> int:
        """Whole days since the member joined."""
        now = now or datetime.now(timezone.utc)
        created = self.created_at
        if created.tzinfo is None and now.tzinfo is not None:
            created = created.replace(tzinfo=timezone.utc)
        elif created.tzinfo is not None and now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return max((now - created).days, 0)


class MemberStats(BaseModel):
    """KPI counts from GET /members/stats."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    active_members: int = Field(0, alias="activeMembers")
    new_this_month: int = Field(0, alias="newThisMonth")
    frozen_members: int = Field(0, alias="frozenMembers")
    cancelled_members: int = Field(0, alias="cancelledMembers")

    @field_validator("*", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return 0 if v is None else v


# =============================================================================
# Member Requests
# =============================================================================


class MemberCreate(BaseModel):
    """Body for POST /members. The server answers with the new row id only."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    emergency_contact: Optional[str] = Field(None, max_length=255)
    location_id: int = Field(..., gt=0)
    plan: MembershipPlan
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class MemberUpdate(BaseModel):
    """Body for PUT /members/{id}. The edit form always submits the full record."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    emergency_contact: Optional[str] = Field(None, max_length=255)
    location_id: int = Field(..., gt=0)
    plan: MembershipPlan
    notes: Optional[str] = None


class FreezeRequest(BaseModel):
    """Body for POST /members/{id}/freeze."""

    freeze_start_date: date
    freeze_end_date: date
    freeze_reason: Optional[FreezeReason] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self) -> "FreezeRequest":
        if self.freeze_end_date <= self.freeze_start_date:
            raise ValueError("Freeze end date must be after the start date")
        return self


class ReactivateRequest(BaseModel):
    """Body for POST /members/{id}/reactivate."""

    reason: ReactivationReason
    start_date: date = Field(..., description="Date billing restarts")
    notes: Optional[str] = None


class CancellationRequest(BaseModel):
    """Body for DELETE /members/{id}."""

    reason: CancellationReason
    notes: Optional[str] = None


class AdminCredentials(BaseModel):
    """Body for POST /admin/verify-password."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    def as_headers(self) -> dict[str, str]:
        return {"X-Admin-Username": self.username, "X-Admin-Password": self.password}


# =============================================================================
# Check-ins
# =============================================================================


class CheckIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    check_in_time: datetime
    location_name: Optional[str] = None


class CheckInHistory(BaseModel):
    """Envelope of GET /members/{id}/check-ins."""

    model_config = ConfigDict(extra="ignore")

    member_id: Optional[Union[int, str]] = None
    member_name: Optional[str] = None
    check_ins: list[CheckIn] = Field(default_factory=list)
    total: int = 0
    showing: int = 0


# =============================================================================
# Payments
# =============================================================================


class Payment(BaseModel):
    """Recorded payment. Payments are append-only."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    amount: Decimal = Field(..., decimal_places=2)
    payment_date: date
    payment_method: Optional[str] = None
    status: PaymentStatus = PaymentStatus.SUCCESS
    notes: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def quantize_amount(cls, v):
        # DECIMAL columns arrive as strings like "50.00"
        return Decimal(str(v)).quantize(Decimal("0.01"))

    @field_validator("payment_date", mode="before")
    @classmethod
    def payment_date_from_timestamp(cls, v):
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


class PaymentCreate(BaseModel):
    """Body for POST /members/{id}/payments."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethodLabel = PaymentMethodLabel.CREDIT_CARD
    payment_date: date = Field(default_factory=date.today)
    status: PaymentStatus = PaymentStatus.SUCCESS
    notes: Optional[str] = None


class PaymentMethod(BaseModel):
    """Card on file. Zero or one per member, replaced wholesale on update."""

    model_config = ConfigDict(extra="ignore")

    card_type: CardType
    last_four: str = Field(..., pattern=r"^\d{4}$")
    expiry_month: int = Field(..., ge=1, le=12)
    expiry_year: int = Field(..., ge=2000)
    cardholder_name: str
    billing_zip: Optional[str] = None

    @property
    def expiry_display(self) -> str:
        return f"{self.expiry_month:02d}/{self.expiry_year}"

    def masked(self) -> str:
        return f"{self.card_type.value} •••• {self.last_four}"

    def is_expired(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (self.expiry_year, self.expiry_month) < (today.year, today.month)


class PaymentMethodUpdate(PaymentMethod):
    """Body for PUT /members/{id}/payment-method."""

    model_config = ConfigDict(extra="forbid")

    @field_validator("cardholder_name")
    @classmethod
    def cardholder_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Cardholder name is required")
        return v
