"""
Payment Summary.

Derives billing standing from a member's plan and payment history:
- next due date is one calendar month after the most recent payment
- a member is overdue when more than OVERDUE_AFTER_DAYS have passed since
  the most recent payment
- a member with no payments is a new member with nothing due yet
"""

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Union

from gymdesk.core.enums import MembershipPlan, PaymentStanding, PaymentStatus, plan_monthly_cost
from gymdesk.schemas.member import Payment

DEFAULT_OVERDUE_AFTER_DAYS = 35


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class PaymentSummary:
    """Billing overview shown on the member detail panel."""

    plan: Union[MembershipPlan, str]
    monthly_cost: Decimal
    standing: PaymentStanding
    last_payment: Optional[Payment] = None
    next_due_date: Optional[date] = None
    days_since_last_payment: Optional[int] = None
    balance_due: Decimal = Decimal("0.00")
    total_paid: Decimal = Decimal("0.00")

    @property
    def is_overdue(self) -> bool:
        return self.standing == PaymentStanding.OVERDUE


def latest_payment(payments: Sequence[Payment]) -> Optional[Payment]:
    """Most recent successful payment, falling back to any payment."""
    if not payments:
        return None
    successful = [p for p in payments if p.status == PaymentStatus.SUCCESS]
    pool = successful or list(payments)
    return max(pool, key=lambda p: p.payment_date)


def summarize_payments(
    plan: Union[MembershipPlan, str],
    payments: Sequence[Payment],
    today: Optional[date] = None,
    overdue_after_days: int = DEFAULT_OVERDUE_AFTER_DAYS,
) -> PaymentSummary:
    today = today or date.today()
    monthly_cost = plan_monthly_cost(plan)
    total_paid = sum(
        (p.amount for p in payments if p.status == PaymentStatus.SUCCESS),
        Decimal("0.00"),
    )

    last = latest_payment(payments)
    if last is None:
        return PaymentSummary(
            plan=plan,
            monthly_cost=monthly_cost,
            standing=PaymentStanding.NEW_MEMBER,
            total_paid=total_paid,
        )

    days_since = (today - last.payment_date).days
    overdue = days_since > overdue_after_days
    return PaymentSummary(
        plan=plan,
        monthly_cost=monthly_cost,
        standing=PaymentStanding.OVERDUE if overdue else PaymentStanding.CURRENT,
        last_payment=last,
        next_due_date=add_months(last.payment_date, 1),
        days_since_last_payment=days_since,
        balance_due=monthly_cost if overdue else Decimal("0.00"),
        total_paid=total_paid,
    )
