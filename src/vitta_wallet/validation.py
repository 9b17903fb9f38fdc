from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .cycle import calculate_grace_period, check_grace_period
from .models import Card
from .util.dates import day_of_month, parse_calendar_date


logger = logging.getLogger(__name__)


BOTH_DATES_REQUIRED = "Both statement close and payment due dates required"


class CardFormResult(BaseModel):
    errors: dict[str, str] = Field(default_factory=dict)
    card: Optional[Card] = None
    grace_period_days: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.errors


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_float(value: Any) -> Optional[float]:
    if _blank(value):
        return None
    try:
        return float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        return None


def validate_card_form(form: Mapping[str, Any]) -> CardFormResult:
    """
    Validate a submitted add/edit card form.

    Problems come back as field -> message so the caller can re-prompt; nothing here raises for bad
    user input. Cycle dates are full calendar dates from the latest statement; only their
    day-of-month is stored, together with the grace period measured between them.
    """
    errors: dict[str, str] = {}

    credit_limit = _to_float(form.get("credit_limit"))
    if credit_limit is None:
        errors["credit_limit"] = "Credit limit is required"
    elif credit_limit <= 0:
        errors["credit_limit"] = "Credit limit must be greater than 0"

    apr = _to_float(form.get("apr"))
    if apr is None:
        errors["apr"] = "APR is required"
    elif not 0 <= apr <= 99:
        errors["apr"] = "APR must be between 0 and 99"

    balance = _to_float(form.get("current_balance"))
    if not _blank(form.get("current_balance")) and balance is None:
        errors["current_balance"] = "Balance must be a number"
    elif balance is not None and balance < 0:
        errors["current_balance"] = "Balance cannot be negative"
    elif balance is not None and credit_limit is not None and 0 < credit_limit < balance:
        errors["current_balance"] = "Balance cannot exceed credit limit"

    amount_to_pay = _to_float(form.get("amount_to_pay"))

    close_raw = form.get("statement_close_date")
    due_raw = form.get("payment_due_date")
    grace: Optional[int] = None
    close_day: Optional[int] = None
    due_day: Optional[int] = None

    if _blank(close_raw) != _blank(due_raw):
        errors["statement_close_date"] = BOTH_DATES_REQUIRED
        errors["payment_due_date"] = BOTH_DATES_REQUIRED
    elif not _blank(close_raw):
        for field, raw in (("statement_close_date", close_raw), ("payment_due_date", due_raw)):
            try:
                parse_calendar_date(raw)
            except ValueError:
                errors[field] = "Enter a valid date (YYYY-MM-DD)"

        if "statement_close_date" not in errors and "payment_due_date" not in errors:
            grace = calculate_grace_period(close_raw, due_raw)
            problem = check_grace_period(grace)
            if problem:
                errors["payment_due_date"] = problem
            else:
                close_day = day_of_month(close_raw)
                due_day = day_of_month(due_raw)

    if errors:
        logger.debug("Card form rejected fields=%s", ",".join(sorted(errors)))
        return CardFormResult(errors=errors, grace_period_days=grace)

    try:
        card = Card(
            card_id=str(form.get("card_id") or ""),
            card_name=str(form.get("card_name") or form.get("nickname") or "Card"),
            nickname=(str(form["nickname"]).strip() or None) if form.get("nickname") else None,
            issuer=form.get("issuer") or None,
            card_network=form.get("card_network") or None,
            credit_limit=credit_limit or 0.0,
            current_balance=balance or 0.0,
            apr=apr or 0.0,
            amount_to_pay=amount_to_pay or 0.0,
            statement_close_day=close_day,
            payment_due_day=due_day,
            grace_period_days=grace,
            reward_structure=form.get("reward_structure") or {},
        )
    except ValidationError as e:
        # Remaining fields (network, rewards) are free-form; surface their errors per field too.
        for err in e.errors():
            loc = str(err["loc"][0]) if err.get("loc") else "form"
            errors.setdefault(loc, err.get("msg", "Invalid value"))
        return CardFormResult(errors=errors, grace_period_days=grace)

    return CardFormResult(card=card, grace_period_days=grace)
