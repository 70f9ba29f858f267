"""
Pydantic Schemas for Inventory Reorder Requests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gymdesk.core.enums import ReorderStatus
from gymdesk.schemas.common import lenient_enum


def _to_money(v):
    if v is None or isinstance(v, Decimal):
        return v
    return Decimal(str(v)).quantize(Decimal("0.01"))


class ReorderRequest(BaseModel):
    """Reorder request as returned by GET /inventory/reorders."""

    model_config = ConfigDict(extra="ignore")

    id: int
    request_number: str = Field(..., description="Display identifier, e.g. RO-0001")
    product_id: Optional[int] = None
    product_name: str
    product_sku: Optional[str] = None
    category_name: Optional[str] = None
    location_id: int
    location_name: Optional[str] = None
    quantity_requested: int
    unit_cost: Decimal
    total_cost: Decimal
    status: lenient_enum(ReorderStatus)
    requested_by: Optional[str] = None
    requested_at: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    quantity_received: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("unit_cost", "total_cost", mode="before")
    @classmethod
    def parse_money(cls, v):
        return _to_money(v)

    @property
    def is_editable(self) -> bool:
        """Quantity and cost are frozen once the request leaves pending."""
        return self.status == ReorderStatus.PENDING

    @property
    def has_consistent_total(self) -> bool:
        return self.total_cost == (self.unit_cost * self.quantity_requested).quantize(
            Decimal("0.01")
        )


class ReorderStats(BaseModel):
    """KPI values from GET /inventory/reorders/stats."""

    model_config = ConfigDict(extra="ignore")

    pending_count: int = 0
    pending_value: Decimal = Decimal("0.00")
    completed_this_week: int = 0
    total_requests: int = 0

    @field_validator("pending_value", mode="before")
    @classmethod
    def parse_pending_value(cls, v):
        return _to_money(v if v is not None else 0)

    @field_validator("pending_count", "completed_this_week", "total_requests", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return 0 if v is None else v


# =============================================================================
# Requests
# =============================================================================


class ReorderCreate(BaseModel):
    """Body for POST /inventory/reorders."""

    product_id: int = Field(..., gt=0)
    location_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None
    requested_by: Optional[str] = None


class ApproveRequest(BaseModel):
    approved_by: str = Field(..., min_length=1)


class RejectRequest(BaseModel):
    rejected_by: str = Field(..., min_length=1)
    rejection_reason: str = Field(..., min_length=1)


class ReceiveRequest(BaseModel):
    quantity_received: int = Field(..., gt=0)
