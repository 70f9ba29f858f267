"""
Unit tests for the payment summary.
"""

from datetime import date
from decimal import Decimal

import pytest

from gymdesk.core.enums import MembershipPlan, PaymentStanding, PaymentStatus
from gymdesk.schemas.member import Payment
from gymdesk.services.payments import add_months, latest_payment, summarize_payments


def payment(day: date, amount: str = "30.00", status: str = "success") -> Payment:
    return Payment(amount=amount, payment_date=day, status=status)


class TestAddMonths:
    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (date(2024, 1, 15), 1, date(2024, 2, 15)),
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2024, 12, 10), 1, date(2025, 1, 10)),
            (date(2024, 3, 31), 13, date(2025, 4, 30)),
        ],
    )
    def test_add_months(self, start, months, expected):
        assert add_months(start, months) == expected


class TestLatestPayment:
    def test_prefers_successful(self):
        ok = payment(date(2024, 1, 1))
        failed = payment(date(2024, 2, 1), status="failed")
        assert latest_payment([failed, ok]) is ok

    def test_falls_back_to_any(self):
        failed = payment(date(2024, 2, 1), status="failed")
        assert latest_payment([failed]) is failed

    def test_empty(self):
        assert latest_payment([]) is None


class TestSummarizePayments:
    def test_new_member(self):
        summary = summarize_payments(MembershipPlan.PREMIUM, [], today=date(2024, 3, 1))
        assert summary.standing == PaymentStanding.NEW_MEMBER
        assert summary.monthly_cost == Decimal("50.00")
        assert summary.balance_due == Decimal("0.00")
        assert summary.next_due_date is None

    def test_current(self):
        summary = summarize_payments(
            MembershipPlan.BASIC,
            [payment(date(2024, 2, 10)), payment(date(2024, 1, 10))],
            today=date(2024, 3, 1),
        )
        assert summary.standing == PaymentStanding.CURRENT
        assert summary.next_due_date == date(2024, 3, 10)
        assert summary.days_since_last_payment == 20
        assert summary.total_paid == Decimal("60.00")
        assert summary.is_overdue is False

    def test_overdue_after_threshold(self):
        summary = summarize_payments(
            MembershipPlan.ELITE, [payment(date(2024, 1, 1), "75.00")], today=date(2024, 2, 6)
        )
        assert summary.days_since_last_payment == 36
        assert summary.is_overdue is True
        assert summary.balance_due == Decimal("75.00")

    def test_threshold_day_is_not_overdue(self):
        summary = summarize_payments(
            MembershipPlan.BASIC, [payment(date(2024, 1, 1))], today=date(2024, 2, 5)
        )
        assert summary.days_since_last_payment == 35
        assert summary.standing == PaymentStanding.CURRENT

    def test_custom_threshold(self):
        summary = summarize_payments(
            MembershipPlan.BASIC,
            [payment(date(2024, 1, 1))],
            today=date(2024, 1, 20),
            overdue_after_days=14,
        )
        assert summary.standing == PaymentStanding.OVERDUE

    def test_refunds_are_not_counted(self):
        summary = summarize_payments(
            MembershipPlan.BASIC,
            [payment(date(2024, 1, 1)), payment(date(2024, 1, 2), status=PaymentStatus.REFUNDED.value)],
            today=date(2024, 1, 10),
        )
        assert summary.total_paid == Decimal("30.00")

    def test_unknown_plan_costs_nothing(self):
        summary = summarize_payments(
            "Student", [payment(date(2024, 1, 1))], today=date(2024, 3, 1)
        )
        assert summary.monthly_cost == Decimal("0.00")
        assert summary.is_overdue is True
        assert summary.balance_due == Decimal("0.00")
