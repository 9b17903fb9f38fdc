from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from .card_source import load_cards_file
from .config import AppConfig, load_config
from .cycle import calculate_grace_period, check_grace_period, describe_payment_cycle, is_typical_grace_period
from .logging_config import configure_logging
from .models import SPEND_CATEGORIES, Card, Reminder
from .optimizer import optimize
from .reminders.planner import summarize_reminder_plan
from .reminders.runner import deliver_due_reminders, plan_reminders_for_user
from .rewards import rank_cards
from .state import WalletStore
from .util.dates import parse_calendar_date
from .util.money import cents_to_dollars, money_to_cents
from .utilization import analyze_portfolio, overall_utilization


logger = logging.getLogger("vitta_wallet")


def _add_config_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vitta-wallet")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    grace = sub.add_parser("grace-period", help="Grace period between a statement close date and its payment due date")
    grace.add_argument("--close", required=True, help="Statement close date (YYYY-MM-DD)")
    grace.add_argument("--due", required=True, help="Payment due date (YYYY-MM-DD)")

    import_cards = sub.add_parser("import-cards", help="Load cards from a YAML/JSON file into the wallet DB")
    _add_config_arg(import_cards)
    import_cards.add_argument("--file", default="", help="Cards file (default: wallet.cards_file from config)")

    list_cards = sub.add_parser("list-cards", help="List stored cards with their payment cycle")
    _add_config_arg(list_cards)

    delete_card = sub.add_parser("delete-card", help="Remove a card along with its reminders and mute")
    _add_config_arg(delete_card)
    delete_card.add_argument("--card", required=True, help="card_id (or name, for cards without an id)")

    best = sub.add_parser("best-card", help="Rank cards for a spend category by reward multiplier")
    _add_config_arg(best)
    best.add_argument("--category", required=True, choices=list(SPEND_CATEGORIES) + ["general"])
    best.add_argument("--amount", default="0", help="Purchase amount used to estimate the reward (e.g. 120.50)")

    analyze = sub.add_parser("analyze", help="Utilization, available credit and tips per card")
    _add_config_arg(analyze)

    opt = sub.add_parser("optimize", help="Split a monthly payment budget across cards (highest APR first)")
    _add_config_arg(opt)
    opt.add_argument("--budget", required=True, help="Monthly payment budget (e.g. 800 or $1,200)")
    opt.add_argument(
        "--reserve-minimums",
        action="store_true",
        help="Cover each card's amount_to_pay before putting extra toward the highest APR.",
    )

    plan = sub.add_parser("plan-reminders", help="Rebuild and store the payment reminder schedule")
    _add_config_arg(plan)
    plan.add_argument("--today", default="", help="Plan as of this date (YYYY-MM-DD; default: today)")

    show = sub.add_parser("reminders", help="Show upcoming reminders and what's due soonest")
    _add_config_arg(show)
    show.add_argument("--today", default="", help="Summarize as of this date (YYYY-MM-DD; default: today)")

    mute = sub.add_parser("mute", help="Mute reminder delivery (the schedule keeps being planned)")
    _add_config_arg(mute)
    mute.add_argument("--days", type=int, default=None, help="Mute for N days (default: until `unmute`)")
    mute.add_argument("--card", default="", help="Mute only this card (card_id or name; default: every card)")

    unmute = sub.add_parser("unmute", help="Resume reminder delivery immediately")
    _add_config_arg(unmute)
    unmute.add_argument("--card", default="", help="Unmute only this card (default: the mute covering every card)")

    deliver = sub.add_parser("deliver", help="Print reminders that are due now and mark them sent")
    _add_config_arg(deliver)
    deliver.add_argument("--now", default="", help="Deliver as of this ISO datetime (default: now)")

    return p


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def _today(value: str) -> date:
    return parse_calendar_date(value) if value else date.today()


def _parse_amount(value: str) -> float:
    try:
        return cents_to_dollars(money_to_cents(value))
    except (ArithmeticError, ValueError):
        raise SystemExit(f"Not a valid amount: {value!r}")


def _parse_now(value: str) -> datetime:
    if not value:
        return datetime.now()
    try:
        now = datetime.fromisoformat(value)
    except ValueError:
        raise SystemExit(f"Not a valid ISO datetime: {value!r}")
    if now.tzinfo is not None:
        # Reminder targets and mutes are naive local wall-clock times.
        now = now.astimezone().replace(tzinfo=None)
    return now


def _require_card(cards: List[Card], key: str) -> str:
    if key not in {c.card_key() for c in cards}:
        raise SystemExit(f"No card {key!r} in the wallet (see `list-cards`)")
    return key


def _load(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)
    return cfg


def _reminder_view(r: Reminder) -> dict:
    return {
        "card": r.card_key,
        "due_date": r.due_date.isoformat(),
        "fires_at": r.target_datetime.isoformat(),
        "lead_time_days": r.lead_time_days,
        "status": r.status,
        "message": f"{r.payload.urgency_emoji} {r.payload.card_nickname}: payment due in {r.payload.days_until_due} day(s)",
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "grace-period":
        try:
            days = calculate_grace_period(args.close, args.due)
        except ValueError as e:
            raise SystemExit(str(e))
        problem = check_grace_period(days)
        _emit({"grace_period_days": days, "typical": is_typical_grace_period(days), "error": problem})
        return 2 if problem else 0

    cfg = _load(args)
    user_id = cfg.wallet.user_id
    store = WalletStore(cfg.state.db_path)
    try:
        return _run_store_command(args, cfg, store, user_id)
    except sqlite3.Error as e:
        logger.error("Wallet storage failed (%s). Nothing was partially written; re-run the command to retry.", e)
        return 1
    finally:
        store.close()


def _run_store_command(args: argparse.Namespace, cfg: AppConfig, store: WalletStore, user_id: str) -> int:
    if args.cmd == "import-cards":
        path = args.file or cfg.wallet.cards_file
        try:
            cards = load_cards_file(path)
        except (OSError, ValueError) as e:
            raise SystemExit(f"Could not load cards from {path}: {e}")
        count = store.upsert_cards(user_id, cards)
        logger.info("Imported %d cards from %s", count, path)
        _emit({"imported": count})
        return 0

    cards = store.get_user_cards(user_id)

    if args.cmd == "list-cards":
        _emit(
            [
                {
                    "card": c.card_key(),
                    "name": c.display_name(),
                    "network": c.card_network,
                    "balance": c.current_balance,
                    "limit": c.credit_limit,
                    "apr": c.apr,
                    "cycle": describe_payment_cycle(c),
                }
                for c in cards
            ]
        )
        return 0

    if args.cmd == "delete-card":
        key = _require_card(cards, args.card)
        store.delete_card(user_id, key)
        logger.info("Deleted card %s for user=%s", key, user_id)
        _emit({"deleted": key})
        return 0

    if args.cmd == "best-card":
        ranked = rank_cards(cards, args.category, amount=_parse_amount(args.amount))
        _emit(
            {
                "best": ranked[0].card.card_key() if ranked else None,
                "ranking": [
                    {"card": r.card.card_key(), "multiplier": r.multiplier, "estimated_reward": r.estimated_reward}
                    for r in ranked
                ],
            }
        )
        return 0

    if args.cmd == "analyze":
        reports = analyze_portfolio(cards)
        _emit(
            {
                "overall_utilization_percent": overall_utilization(cards),
                "cards": [r.model_dump(mode="json") for r in reports],
            }
        )
        return 0

    if args.cmd == "optimize":
        plan = optimize(cards, _parse_amount(args.budget), reserve_minimums=args.reserve_minimums)
        _emit(plan.model_dump(mode="json"))
        return 0

    if args.cmd == "plan-reminders":
        today = _today(args.today)
        run_id = store.record_run_start("plan-reminders")
        t0 = time.time()
        try:
            result = plan_reminders_for_user(
                store,
                user_id,
                today=today,
                lead_times=cfg.reminders.lead_times,
                options=cfg.reminders.planner_options(),
            )
        except Exception as e:
            store.record_run_finish(run_id, ok=False, message=str(e))
            logger.error("Reminder planning failed (run_id=%s seconds=%.2f)", run_id, time.time() - t0)
            raise
        store.record_run_finish(run_id, ok=True, message=result.reason or None)
        logger.info("Reminder planning finished (run_id=%s seconds=%.2f)", run_id, time.time() - t0)
        _emit(
            {
                "planned": result.planned,
                "created": result.created,
                "removed": result.removed,
                "skipped": result.skipped,
                "reason": result.reason or None,
            }
        )
        return 0

    if args.cmd == "reminders":
        today = _today(args.today)
        reminders = store.list_reminders(user_id, statuses=("scheduled", "snoozed"), limit=1_000)
        summary = summarize_reminder_plan(reminders, today, horizon_days=cfg.reminders.horizon_days)
        mute = store.get_mute_state(user_id)
        now = datetime.now()
        muted_cards = sorted(k for k, m in store.get_card_mutes(user_id).items() if m.is_active(now))
        _emit(
            {
                "total_upcoming": summary.total_upcoming,
                "next": _reminder_view(summary.next_reminder) if summary.next_reminder else None,
                "muted": mute.is_active(now),
                "muted_cards": muted_cards,
                "muted_until": mute.muted_until.isoformat() if mute.muted_until else None,
                "upcoming": [_reminder_view(r) for rs in summary.by_card.values() for r in rs],
            }
        )
        return 0

    if args.cmd == "mute":
        card_key = _require_card(cards, args.card) if args.card else None
        try:
            state = store.mute_reminders(user_id, args.days, card_key=card_key)
        except ValueError as e:
            raise SystemExit(str(e))
        _emit(
            {
                "muted": True,
                "card": state.card_key,
                "muted_until": state.muted_until.isoformat() if state.muted_until else None,
            }
        )
        return 0

    if args.cmd == "unmute":
        card_key = _require_card(cards, args.card) if args.card else None
        state = store.unmute_reminders(user_id, card_key)
        _emit({"muted": False, "card": state.card_key})
        return 0

    if args.cmd == "deliver":
        now = _parse_now(args.now)
        delivered = deliver_due_reminders(store, user_id, now=now, notify=lambda r: _emit(_reminder_view(r)))
        logger.info("Delivered %d reminders", len(delivered))
        return 0

    raise SystemExit(f"Unknown command: {args.cmd}")
