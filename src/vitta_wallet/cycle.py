"""
Statement-cycle math.

Cards only store day-of-month values (statement closes on the 15th, payment due on the 10th);
concrete dates are derived on demand relative to a reference day. All arithmetic is done on
`datetime.date`, never on timestamps.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from .models import BillingCycle, Card
from .util.dates import DateLike, add_months, clamp_day, day_of_month, parse_calendar_date


logger = logging.getLogger(__name__)


MIN_GRACE_DAYS = 15
MAX_GRACE_DAYS = 35
TYPICAL_GRACE_DAYS = (21, 27)
DEFAULT_GRACE_DAYS = 25

# A due day only a few days after close almost always means next month's due date.
_MIN_SAME_MONTH_GAP = 5

GRACE_TOO_SHORT = "Grace period too short - payment due should be 21-27 days after statement closes"
GRACE_TOO_LONG = "Grace period too long - check your dates"


def calculate_grace_period(statement_close_date: DateLike, payment_due_date: DateLike) -> int:
    """
    Whole days between statement close and payment due.

    calculate_grace_period("2025-01-15", "2025-02-10") == 26
    """
    if not statement_close_date or not payment_due_date:
        raise ValueError("calculate_grace_period: both statement close and payment due dates are required")

    close = parse_calendar_date(statement_close_date)
    due = parse_calendar_date(payment_due_date)
    days = (due - close).days
    logger.debug("Grace period close=%s due=%s days=%d", close, due, days)
    return days


def check_grace_period(days: int) -> Optional[str]:
    if days < MIN_GRACE_DAYS:
        return GRACE_TOO_SHORT
    if days > MAX_GRACE_DAYS:
        return GRACE_TOO_LONG
    return None


def is_typical_grace_period(days: int) -> bool:
    low, high = TYPICAL_GRACE_DAYS
    return low <= days <= high


def derive_billing_cycle(statement_close_date: DateLike, payment_due_date: DateLike) -> BillingCycle:
    days = calculate_grace_period(statement_close_date, payment_due_date)
    problem = check_grace_period(days)
    if problem:
        raise ValueError(f"{problem} (got {days} days)")
    return BillingCycle(
        statement_close_day=day_of_month(statement_close_date),
        payment_due_day=day_of_month(payment_due_date),
        grace_period_days=days,
    )


def days_until(target: date, today: date) -> int:
    return (target - today).days


def most_recent_statement_close(statement_close_day: int, today: date) -> date:
    """
    The last statement that has already closed. A statement closing today is not closed yet,
    so on the close day itself this returns the previous month's close.
    """
    if today.day > statement_close_day:
        return date(today.year, today.month, statement_close_day)
    return add_months(today, -1, day=statement_close_day)


def payment_due_for_statement(statement_close_day: int, payment_due_day: int, statement_close_date: date) -> date:
    if payment_due_day <= statement_close_day or (payment_due_day - statement_close_day) < _MIN_SAME_MONTH_GAP:
        return add_months(statement_close_date, 1, day=payment_due_day)
    return clamp_day(statement_close_date.year, statement_close_date.month, payment_due_day)


def next_payment_due(payment_due_day: int, today: date) -> date:
    """This month's due date if it hasn't passed yet (today counts), otherwise next month's."""
    this_month = clamp_day(today.year, today.month, payment_due_day)
    if this_month >= today:
        return this_month
    return add_months(today, 1, day=payment_due_day)


def calculate_float_days(card: Card, purchase_date: date) -> int:
    """
    Days between a purchase and the payment due date of the statement it lands on.

    Without cycle data, fall back to the stored grace period (or the usual 25 days).
    """
    fallback = card.grace_period_days or DEFAULT_GRACE_DAYS
    if not card.statement_close_day or not card.payment_due_day:
        return fallback

    close_day = card.statement_close_day
    this_close = clamp_day(purchase_date.year, purchase_date.month, close_day)
    if purchase_date > this_close:
        this_close = add_months(purchase_date, 1, day=close_day)

    due = payment_due_for_statement(close_day, card.payment_due_day, this_close)
    return max(0, days_until(due, purchase_date))


def format_day_of_month(day: Optional[int]) -> str:
    if not day:
        return ""
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def describe_payment_cycle(card: Card) -> str:
    if not card.statement_close_day or not card.payment_due_day:
        if card.grace_period_days:
            return f"{card.grace_period_days}-day grace period"
        return "Payment cycle not configured"

    grace = card.grace_period_days
    if grace is None:
        # Estimate from a representative statement; the exact value depends on month length.
        close = date(2025, 1, min(card.statement_close_day, 31))
        grace = days_until(payment_due_for_statement(card.statement_close_day, card.payment_due_day, close), close)

    return (
        f"Statement closes {format_day_of_month(card.statement_close_day)}, "
        f"payment due {format_day_of_month(card.payment_due_day)} ({grace} days grace)"
    )
