"""
Pydantic Schemas for the Gym Admin Dashboard.

This module exports the response and request schemas used by the client.
"""

from gymdesk.schemas.common import ChartData, Location
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
from gymdesk.schemas.reorder import (
    ApproveRequest,
    ReceiveRequest,
    RejectRequest,
    ReorderCreate,
    ReorderRequest,
    ReorderStats,
)

__all__ = [
    "AdminCredentials",
    "ApproveRequest",
    "CancellationRequest",
    "ChartData",
    "CheckIn",
    "CheckInHistory",
    "FreezeRequest",
    "Location",
    "Member",
    "MemberCreate",
    "MemberStats",
    "MemberUpdate",
    "Payment",
    "PaymentCreate",
    "PaymentMethod",
    "PaymentMethodUpdate",
    "ReactivateRequest",
    "ReceiveRequest",
    "RejectRequest",
    "ReorderCreate",
    "ReorderRequest",
    "ReorderStats",
]
