from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union


def money_to_cents(value: str) -> int:
    """
    Parse values like:
    - "$3,040.16"
    - "3040.16"
    - "$0.37"
    - "-$12.34"
    """
    if value is None:
        raise ValueError("money_to_cents: value is None")

    s = value.strip()
    if not s:
        raise ValueError("money_to_cents: empty string")

    # Remove currency symbols/spaces/commas
    s = s.replace("$", "").replace(",", "").strip()

    # Handle parentheses as negative
    if s.startswith("(") and s.endswith(")"):
        s = "-" + s[1:-1].strip()

    dec = Decimal(s).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(dec * 100)


def dollars_to_cents(amount: Union[int, float, Decimal]) -> int:
    # Go through str() so 0.1 + 0.2 style float noise doesn't leak into the cents.
    dec = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(dec * 100)


def cents_to_dollars(cents: int) -> float:
    return float(Decimal(cents) / 100)


def cents_to_money_str(cents: int) -> str:
    dec = (Decimal(cents) / 100).quantize(Decimal("0.01"))
    return f"${dec:,.2f}"


def format_money(amount: Union[int, float]) -> str:
    return cents_to_money_str(dollars_to_cents(amount))
