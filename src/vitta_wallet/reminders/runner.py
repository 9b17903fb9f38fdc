from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..models import MuteState, Reminder
from ..state import WalletStore
from .planner import DEFAULT_LEAD_TIMES, PlannerOptions, filter_existing_reminders, generate_baseline_reminder_plan


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanRunResult:
    user_id: str
    ok: bool = True
    planned: int = 0
    created: int = 0
    removed: int = 0
    skipped: bool = False
    reason: str = ""
    error: Optional[str] = None


def plan_reminders_for_user(
    store: WalletStore,
    user_id: str,
    *,
    today: date,
    lead_times: Sequence[int] = DEFAULT_LEAD_TIMES,
    options: Optional[PlannerOptions] = None,
) -> PlanRunResult:
    """
    Rebuild the user's reminder schedule from their current cards.

    The whole plan is recomputed and upserted each time; scheduled reminders that are no longer part
    of it (card deleted, due day changed) are removed. Two racing runs simply converge on the same rows.
    """
    cards = store.get_user_cards(user_id)
    if not cards:
        logger.info("No cards for user=%s; nothing to plan", user_id)
        return PlanRunResult(user_id=user_id, skipped=True, reason="no_cards")

    plan = generate_baseline_reminder_plan(cards, today, lead_times, user_id=user_id, options=options)

    existing = store.list_reminders(user_id, statuses=("scheduled", "snoozed", "sent", "acknowledged", "cancelled"), limit=10_000)
    created = len(filter_existing_reminders(plan, existing))

    store.upsert_reminders(user_id, plan)
    removed = store.prune_scheduled_reminders(user_id, (r.reminder_key() for r in plan))

    logger.info(
        "Planned reminders user=%s planned=%d new=%d removed=%d",
        user_id,
        len(plan),
        created,
        removed,
    )
    return PlanRunResult(user_id=user_id, planned=len(plan), created=created, removed=removed)


def plan_reminders_for_users(
    store: WalletStore,
    user_ids: Iterable[str],
    *,
    today: date,
    lead_times: Sequence[int] = DEFAULT_LEAD_TIMES,
    options: Optional[PlannerOptions] = None,
) -> list[PlanRunResult]:
    results: list[PlanRunResult] = []
    for user_id in dict.fromkeys(u for u in user_ids if u):
        try:
            results.append(
                plan_reminders_for_user(store, user_id, today=today, lead_times=lead_times, options=options)
            )
        except (sqlite3.Error, ValueError) as e:
            # One user's bad data or a storage hiccup shouldn't stop everyone else's schedule.
            logger.error("Failed to plan reminders for user=%s: %s", user_id, e)
            results.append(PlanRunResult(user_id=user_id, ok=False, error=str(e)))
    return results


def collect_deliverable(
    reminders: Iterable[Reminder],
    mute: MuteState,
    now: datetime,
    card_mutes: Optional[Mapping[str, MuteState]] = None,
) -> list[Reminder]:
    """
    Reminders that should fire at `now`: scheduled/snoozed, target reached, and not muted.

    `mute` is the user-wide mute; `card_mutes` holds per-card mutes keyed by card. Either one being
    active holds a reminder back.
    """
    if mute.is_active(now):
        return []
    card_mutes = card_mutes or {}
    out: list[Reminder] = []
    for r in reminders:
        if r.status not in ("scheduled", "snoozed") or r.target_datetime > now:
            continue
        card_mute = card_mutes.get(r.card_key)
        if card_mute is not None and card_mute.is_active(now):
            continue
        out.append(r)
    return out


def deliver_due_reminders(
    store: WalletStore,
    user_id: str,
    *,
    now: datetime,
    notify: Callable[[Reminder], None],
) -> list[Reminder]:
    mute = store.get_mute_state(user_id)
    if mute.is_active(now):
        logger.info("Reminders muted for user=%s; skipping delivery", user_id)
        return []

    card_mutes = store.get_card_mutes(user_id)
    pending = store.list_reminders(user_id, end=now, statuses=("scheduled", "snoozed"), limit=1_000)
    delivered: list[Reminder] = []
    for reminder in collect_deliverable(pending, mute, now, card_mutes):
        notify(reminder)
        store.update_reminder_status(reminder.reminder_key(), "sent")
        delivered.append(reminder.model_copy(update={"status": "sent"}))

    logger.info("Delivered %d reminders for user=%s", len(delivered), user_id)
    return delivered
