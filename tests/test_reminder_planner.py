from __future__ import annotations

from datetime import date, datetime

import pytest

from vitta_wallet.reminders.planner import (
    PlannerOptions,
    QuietHours,
    apply_quiet_hours,
    filter_existing_reminders,
    generate_baseline_reminder_plan,
    summarize_reminder_plan,
    urgency_for,
)


TODAY = date(2025, 1, 10)


def test_due_in_three_days_fires_lead_three_today(make_card) -> None:
    card = make_card(card_id="c1", nickname="Blue", payment_due_day=13, current_balance=420)
    plan = generate_baseline_reminder_plan([card], TODAY, [7, 3, 1, 0], user_id="u1")

    assert [r.lead_time_days for r in plan] == [3, 1, 0]
    first = plan[0]
    assert first.due_date == date(2025, 1, 13)
    assert first.target_datetime == datetime(2025, 1, 10, 9, 0)
    assert first.payload.days_until_due == 3
    assert first.payload.card_nickname == "Blue"
    assert first.payload.amount_due == 420
    assert (first.payload.urgency, first.payload.urgency_emoji) == ("soon", "🟡")
    assert first.reminder_key() == "u1|c1|payment_due|2025-01-13|3"
    assert [r.priority for r in plan] == [70, 90, 100]


def test_plan_is_idempotent(make_card) -> None:
    cards = [
        make_card(card_id="a", payment_due_day=13),
        make_card(card_id="b", payment_due_day=28),
    ]
    first = generate_baseline_reminder_plan(cards, TODAY, user_id="u1")
    second = generate_baseline_reminder_plan(list(reversed(cards)), TODAY, user_id="u1")

    assert first == second
    assert len({r.reminder_key() for r in first}) == len(first)


def test_cards_without_due_day_are_skipped(make_card) -> None:
    assert generate_baseline_reminder_plan([make_card()], TODAY) == []


def test_negative_lead_times_rejected(make_card) -> None:
    with pytest.raises(ValueError):
        generate_baseline_reminder_plan([make_card(payment_due_day=13)], TODAY, [3, -1])


def test_due_day_already_passed_rolls_to_next_month(make_card) -> None:
    plan = generate_baseline_reminder_plan([make_card(payment_due_day=5)], TODAY, [7])
    assert [(r.due_date, r.target_datetime.date()) for r in plan] == [(date(2025, 2, 5), date(2025, 1, 29))]


def test_follow_ups_only_when_due_today(make_card) -> None:
    card = make_card(payment_due_day=13)
    opts = PlannerOptions(follow_up_days=(1, 3))

    before = generate_baseline_reminder_plan([card], TODAY, [1, 0], options=opts)
    assert [r.lead_time_days for r in before] == [1, 0]

    on_due_day = generate_baseline_reminder_plan([card], date(2025, 1, 13), [1, 0], options=opts)
    assert [r.lead_time_days for r in on_due_day] == [0, -1, -3]
    assert on_due_day[1].payload.urgency == "overdue"
    assert on_due_day[2].target_datetime == datetime(2025, 1, 16, 9, 0)


def test_quiet_hours_push_reminders_to_morning(make_card) -> None:
    card = make_card(payment_due_day=13)
    early = generate_baseline_reminder_plan([card], TODAY, [3], options=PlannerOptions(reminder_hour=6))
    assert early[0].target_datetime == datetime(2025, 1, 10, 8, 0)

    unquiet = PlannerOptions(reminder_hour=6, quiet_hours=None)
    assert generate_baseline_reminder_plan([card], TODAY, [3], options=unquiet)[0].target_datetime.hour == 6


def test_apply_quiet_hours() -> None:
    overnight = QuietHours(start=21, end=8)
    assert apply_quiet_hours(datetime(2025, 1, 10, 22, 15), overnight) == datetime(2025, 1, 11, 8, 0)
    assert apply_quiet_hours(datetime(2025, 1, 10, 3, 0), overnight) == datetime(2025, 1, 10, 8, 0)
    assert apply_quiet_hours(datetime(2025, 1, 10, 12, 0), overnight) == datetime(2025, 1, 10, 12, 0)

    midday = QuietHours(start=12, end=14)
    assert apply_quiet_hours(datetime(2025, 1, 10, 13, 0), midday) == datetime(2025, 1, 10, 14, 0)
    assert apply_quiet_hours(datetime(2025, 1, 10, 14, 0), midday) == datetime(2025, 1, 10, 14, 0)


def test_urgency_levels() -> None:
    assert [urgency_for(d)[0] for d in (7, 6, 3, 2, 1, 0, -1)] == [
        "normal",
        "soon",
        "soon",
        "urgent",
        "urgent",
        "due",
        "overdue",
    ]


def test_filter_existing_reminders(make_card) -> None:
    plan = generate_baseline_reminder_plan([make_card(payment_due_day=13)], TODAY, user_id="u1")
    assert filter_existing_reminders(plan, plan[:1]) == plan[1:]
    assert filter_existing_reminders(plan, []) == plan


def test_summary_picks_closest_due_date(make_card) -> None:
    cards = [
        make_card(card_id="later", payment_due_day=20),
        make_card(card_id="soon", payment_due_day=13),
    ]
    plan = generate_baseline_reminder_plan(cards, TODAY, user_id="u1")
    summary = summarize_reminder_plan(plan, TODAY)

    assert summary.total_upcoming == len(plan)
    assert summary.next_reminder is not None
    assert summary.next_reminder.card_key == "soon"
    assert summary.next_reminder.lead_time_days == 3
    assert set(summary.by_card) == {"later", "soon"}


def test_summary_respects_horizon_and_status(make_card) -> None:
    plan = generate_baseline_reminder_plan([make_card(payment_due_day=13)], TODAY, user_id="u1")
    short = summarize_reminder_plan(plan, TODAY, horizon_days=1)
    assert [r.lead_time_days for r in short.by_card["c1"]] == [3]

    sent = [plan[0].model_copy(update={"status": "sent"})] + plan[1:]
    summary = summarize_reminder_plan(sent, TODAY)
    assert summary.total_upcoming == len(plan) - 1
    assert summary.next_reminder is not None
    assert summary.next_reminder.lead_time_days == 1


def test_summary_ignores_past_due_for_next(make_card) -> None:
    opts = PlannerOptions(follow_up_days=(1,))
    plan = generate_baseline_reminder_plan([make_card(payment_due_day=13)], date(2025, 1, 13), [0], options=opts)
    follow_up_day = date(2025, 1, 14)

    summary = summarize_reminder_plan(plan, follow_up_day)
    assert summary.total_upcoming == 1
    assert summary.next_reminder is None
    assert summarize_reminder_plan([], TODAY).total_upcoming == 0


def test_late_reminder_hour_stays_on_its_own_day(make_card) -> None:
    card = make_card(payment_due_day=13)
    opts = PlannerOptions(reminder_hour=22)

    plan = generate_baseline_reminder_plan([card], TODAY, [3, 0], options=opts)
    assert [(r.lead_time_days, r.target_datetime) for r in plan] == [
        (3, datetime(2025, 1, 10, 20, 0)),
        (0, datetime(2025, 1, 13, 20, 0)),
    ]
    assert all(r.target_datetime.date() <= r.due_date for r in plan)


def test_follow_up_payload_counts_days_past_due(make_card) -> None:
    opts = PlannerOptions(follow_up_days=(1,), reminder_hour=22)
    plan = generate_baseline_reminder_plan([make_card(payment_due_day=13)], date(2025, 1, 13), [0], options=opts)

    follow_up = plan[-1]
    assert follow_up.lead_time_days == -1
    assert follow_up.payload.days_until_due == -1
    # Follow-ups may slide past quiet hours into the next morning.
    assert follow_up.target_datetime == datetime(2025, 1, 15, 8, 0)
