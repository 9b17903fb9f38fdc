"""
Baseline payment-reminder schedule.

Stateless: given the user's cards and "today", produce the reminders for each card's next payment
due date. Persisting and delivering them is the runner's job, and mute state never reaches this
module. Running the planner twice with the same inputs yields the same reminders (same keys), so
the output can be upserted as often as needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from ..cycle import days_until, next_payment_due
from ..models import Card, Reminder, ReminderPayload, ReminderSummary


logger = logging.getLogger(__name__)


DEFAULT_LEAD_TIMES: tuple[int, ...] = (7, 3, 1, 0)
DEFAULT_HORIZON_DAYS = 30
DEFAULT_REMINDER_HOUR = 9

_ACTIVE_STATUSES = {"scheduled", "snoozed"}


@dataclass(frozen=True)
class QuietHours:
    start: int = 21
    end: int = 8


@dataclass(frozen=True)
class PlannerOptions:
    reminder_hour: int = DEFAULT_REMINDER_HOUR
    quiet_hours: Optional[QuietHours] = QuietHours()
    # Days after the due date for follow-ups; only planned when the payment is due today.
    follow_up_days: tuple[int, ...] = ()
    horizon_days: int = DEFAULT_HORIZON_DAYS


def apply_quiet_hours(when: datetime, quiet_hours: Optional[QuietHours]) -> datetime:
    """Slide a reminder that would fire inside the quiet window to the window's end."""
    if quiet_hours is None or quiet_hours.start == quiet_hours.end:
        return when

    start, end = quiet_hours.start, quiet_hours.end
    hour = when.hour
    wake = when.replace(hour=end, minute=0, second=0, microsecond=0)

    if start > end:
        # Window spans midnight, e.g. 21:00 -> 08:00.
        if hour >= start:
            return wake + timedelta(days=1)
        if hour < end:
            return wake
        return when

    if start <= hour < end:
        return wake
    return when


def _fire_time(fire_day: date, lead: int, opts: PlannerOptions) -> datetime:
    target = apply_quiet_hours(datetime.combine(fire_day, time(hour=opts.reminder_hour)), opts.quiet_hours)
    if lead >= 0 and opts.quiet_hours is not None and target.date() > fire_day:
        # A pre-due or due-day reminder must fire on its own day: go back to the hour before quiet starts.
        return datetime.combine(fire_day, time(hour=max(opts.quiet_hours.start - 1, 0)))
    return target


def urgency_for(lead_time_days: int) -> tuple[str, str]:
    if lead_time_days < 0:
        return "overdue", "⏰"
    if lead_time_days == 0:
        return "due", "🔴"
    if lead_time_days <= 2:
        return "urgent", "🟠"
    if lead_time_days <= 6:
        return "soon", "🟡"
    return "normal", "🟢"


def _build_reminder(*, user_id: str, card: Card, due: date, lead: int, target: datetime) -> Reminder:
    urgency, emoji = urgency_for(lead)
    return Reminder(
        user_id=user_id,
        card_key=card.card_key(),
        due_date=due,
        target_datetime=target,
        lead_time_days=lead,
        priority=max(0, 100 - lead * 10),
        payload=ReminderPayload(
            card_nickname=card.display_name(),
            urgency=urgency,
            urgency_emoji=emoji,
            days_until_due=lead,
            amount_due=card.amount_to_pay or card.current_balance,
        ),
    )


def _sort_key(r: Reminder) -> tuple:
    return (r.target_datetime, r.card_key, r.lead_time_days)


def generate_baseline_reminder_plan(
    cards: Iterable[Card],
    today: date,
    lead_times: Sequence[int] = DEFAULT_LEAD_TIMES,
    *,
    user_id: str = "",
    options: Optional[PlannerOptions] = None,
) -> list[Reminder]:
    """
    One reminder per (card, lead time) for each card's next due date.

    `lead_times` are days before the due date (0 = the due date). Reminders whose day is already
    behind `today` are skipped; those have either fired or been missed.
    """
    opts = options or PlannerOptions()
    leads = sorted({int(x) for x in lead_times}, reverse=True)
    if any(x < 0 for x in leads):
        raise ValueError("lead_times are days before the due date and must be >= 0")

    reminders: list[Reminder] = []
    for card in cards:
        if not card.payment_due_day:
            continue

        due = next_payment_due(card.payment_due_day, today)
        offsets = list(leads)
        if days_until(due, today) == 0:
            offsets.extend(-abs(int(d)) for d in opts.follow_up_days if d)

        for lead in offsets:
            fire_day = due - timedelta(days=lead)
            if fire_day < today:
                continue
            target = _fire_time(fire_day, lead, opts)
            reminders.append(_build_reminder(user_id=user_id, card=card, due=due, lead=lead, target=target))

    reminders.sort(key=_sort_key)
    logger.debug("Planned %d reminders for user=%s today=%s", len(reminders), user_id or "-", today)
    return reminders


def filter_existing_reminders(candidates: Iterable[Reminder], existing: Iterable[Reminder]) -> list[Reminder]:
    known = {r.reminder_key() for r in existing}
    return [r for r in candidates if r.reminder_key() not in known]


def summarize_reminder_plan(
    reminders: Iterable[Reminder],
    today: date,
    *,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> ReminderSummary:
    """
    Count what's still coming up within the horizon and pick the one thing due soonest.

    `next_reminder` belongs to the card whose payment is closest (smallest non-negative days until
    due); among that card's reminders, the earliest one wins.
    """
    horizon_end = today + timedelta(days=horizon_days)
    upcoming = sorted(
        (
            r
            for r in reminders
            if r.status in _ACTIVE_STATUSES and today <= r.target_datetime.date() <= horizon_end
        ),
        key=_sort_key,
    )

    by_card: dict[str, list[Reminder]] = {}
    for r in upcoming:
        by_card.setdefault(r.card_key, []).append(r)

    candidates = [r for r in upcoming if days_until(r.due_date, today) >= 0]
    next_reminder = min(
        candidates,
        key=lambda r: (days_until(r.due_date, today), r.target_datetime, r.card_key),
        default=None,
    )

    return ReminderSummary(total_upcoming=len(upcoming), next_reminder=next_reminder, by_card=by_card)
