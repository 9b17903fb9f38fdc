from __future__ import annotations

from datetime import date

import pytest

from vitta_wallet.cycle import (
    GRACE_TOO_LONG,
    GRACE_TOO_SHORT,
    calculate_float_days,
    calculate_grace_period,
    check_grace_period,
    derive_billing_cycle,
    describe_payment_cycle,
    format_day_of_month,
    is_typical_grace_period,
    most_recent_statement_close,
    next_payment_due,
    payment_due_for_statement,
)


def test_grace_period_across_month_boundary() -> None:
    assert calculate_grace_period("2025-01-15", "2025-02-10") == 26
    assert calculate_grace_period(date(2025, 1, 15), date(2025, 2, 10)) == 26


def test_grace_period_leap_year() -> None:
    assert calculate_grace_period("2024-02-10", "2024-03-06") == 25
    assert calculate_grace_period("2025-02-10", "2025-03-06") == 24


def test_grace_period_requires_both_dates() -> None:
    with pytest.raises(ValueError):
        calculate_grace_period("", "2025-02-10")
    with pytest.raises(ValueError):
        calculate_grace_period("2025-01-15", None)  # type: ignore[arg-type]


def test_check_grace_period_bounds() -> None:
    assert check_grace_period(14) == GRACE_TOO_SHORT
    assert check_grace_period(15) is None
    assert check_grace_period(35) is None
    assert check_grace_period(36) == GRACE_TOO_LONG
    assert is_typical_grace_period(21)
    assert is_typical_grace_period(27)
    assert not is_typical_grace_period(30)


def test_derive_billing_cycle() -> None:
    cycle = derive_billing_cycle("2025-01-15", "2025-02-10")
    assert cycle.statement_close_day == 15
    assert cycle.payment_due_day == 10
    assert cycle.grace_period_days == 26

    with pytest.raises(ValueError):
        derive_billing_cycle("2025-01-15", "2025-01-20")


def test_next_payment_due() -> None:
    assert next_payment_due(10, date(2025, 1, 10)) == date(2025, 1, 10)
    assert next_payment_due(10, date(2025, 1, 11)) == date(2025, 2, 10)
    assert next_payment_due(31, date(2025, 2, 1)) == date(2025, 2, 28)
    assert next_payment_due(5, date(2025, 12, 20)) == date(2026, 1, 5)


def test_most_recent_statement_close() -> None:
    assert most_recent_statement_close(15, date(2025, 1, 20)) == date(2025, 1, 15)
    # Closing today means it hasn't closed yet.
    assert most_recent_statement_close(15, date(2025, 1, 15)) == date(2024, 12, 15)
    assert most_recent_statement_close(31, date(2025, 3, 5)) == date(2025, 2, 28)


def test_payment_due_for_statement() -> None:
    assert payment_due_for_statement(15, 10, date(2025, 1, 15)) == date(2025, 2, 10)
    assert payment_due_for_statement(1, 25, date(2025, 1, 1)) == date(2025, 1, 25)
    # Due only two days after close is next month's due date.
    assert payment_due_for_statement(20, 22, date(2025, 1, 20)) == date(2025, 2, 22)


def test_calculate_float_days(make_card) -> None:
    card = make_card(statement_close_day=15, payment_due_day=10, grace_period_days=26)
    # Bought the day after close: rides a whole extra cycle.
    assert calculate_float_days(card, date(2025, 1, 16)) == 53
    assert calculate_float_days(card, date(2025, 1, 15)) == 26

    assert calculate_float_days(make_card(), date(2025, 1, 16)) == 25
    assert calculate_float_days(make_card(grace_period_days=21), date(2025, 1, 16)) == 21


def test_format_day_of_month() -> None:
    assert [format_day_of_month(d) for d in (1, 2, 3, 4, 11, 12, 13, 21, 22, 23, 31)] == [
        "1st",
        "2nd",
        "3rd",
        "4th",
        "11th",
        "12th",
        "13th",
        "21st",
        "22nd",
        "23rd",
        "31st",
    ]
    assert format_day_of_month(None) == ""


def test_describe_payment_cycle(make_card) -> None:
    card = make_card(statement_close_day=15, payment_due_day=10, grace_period_days=26)
    assert describe_payment_cycle(card) == "Statement closes 15th, payment due 10th (26 days grace)"
    assert describe_payment_cycle(make_card()) == "Payment cycle not configured"
