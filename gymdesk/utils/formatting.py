"""
Display Formatting Helpers.

Currency, dates, card masking and badge colours for the dashboard pages.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union

from gymdesk.core.enums import (
    MEMBER_STATUS_COLORS,
    PAYMENT_STATUS_COLORS,
    REORDER_STATUS_COLORS,
    MemberStatus,
    PaymentStatus,
    ReorderStatus,
)
from gymdesk.schemas.member import PaymentMethod

Number = Union[Decimal, int, float]

NOT_AVAILABLE = "N/A"
FALLBACK_COLOR = "#6b7280"


def format_currency(amount: Optional[Number]) -> str:
    """$1,234.50"""
    if amount is None:
        return NOT_AVAILABLE
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_date(value: Optional[Union[date, datetime]]) -> str:
    """Jan 5, 2024"""
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def format_datetime(value: Optional[datetime]) -> str:
    """Jan 5, 2024 3:07 PM"""
    if value is None:
        return NOT_AVAILABLE
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{format_date(value)} {hour}:{value.minute:02d} {suffix}"


def format_card(method: Optional[PaymentMethod]) -> str:
    """Visa •••• 4242 (04/2027)"""
    if method is None:
        return "No payment method on file"
    return f"{method.masked()} ({method.expiry_display})"


def status_label(status: Union[MemberStatus, ReorderStatus, PaymentStatus, str]) -> str:
    if isinstance(status, MemberStatus):
        status = status.display_status
    value = status.value if hasattr(status, "value") else str(status)
    return value.capitalize()


def _badge_color(colors: Mapping[Enum, str], enum_cls: type[Enum], status: Any) -> str:
    # Chart labels arrive as plain strings
    try:
        return colors.get(enum_cls(status), FALLBACK_COLOR)
    except ValueError:
        return FALLBACK_COLOR


def member_status_color(status: Union[MemberStatus, str]) -> str:
    return _badge_color(MEMBER_STATUS_COLORS, MemberStatus, status)


def reorder_status_color(status: Union[ReorderStatus, str]) -> str:
    return _badge_color(REORDER_STATUS_COLORS, ReorderStatus, status)


def payment_status_color(status: Union[PaymentStatus, str]) -> str:
    return _badge_color(PAYMENT_STATUS_COLORS, PaymentStatus, status)
