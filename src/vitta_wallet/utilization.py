from __future__ import annotations

from typing import Iterable, Optional

from .cycle import format_day_of_month
from .models import Card, Tip, UtilizationReport
from .util.money import format_money


HIGH_UTILIZATION_PCT = 70.0
MODERATE_UTILIZATION_PCT = 30.0


def utilization_percent(card: Card) -> Optional[float]:
    """Balance as a percent of the limit, one decimal. None when there is no limit to divide by."""
    if card.credit_limit <= 0:
        return None
    return round(card.current_balance / card.credit_limit * 100, 1)


def analyze(card: Card) -> UtilizationReport:
    util = utilization_percent(card)
    tips: list[Tip] = []

    if card.current_balance == 0:
        tips.append(
            Tip(
                kind="zero_balance",
                severity="info",
                icon="✅",
                title="Zero Balance",
                message="No balance on this card. Your grace period is intact for new purchases.",
            )
        )
    else:
        if card.payment_due_day:
            tips.append(
                Tip(
                    kind="pay_in_full",
                    severity="warning",
                    icon="💡",
                    title="Pay in Full",
                    message=(
                        f"Pay your {format_money(card.current_balance)} balance by the "
                        f"{format_day_of_month(card.payment_due_day)} to avoid "
                        f"{format_money(card.monthly_interest)} in interest."
                    ),
                )
            )

        if util is not None and util > HIGH_UTILIZATION_PCT:
            tips.append(
                Tip(
                    kind="high_utilization",
                    severity="severe",
                    icon="🚨",
                    title="High Utilization",
                    message=f"Your {util}% utilization is very high and is likely hurting your credit score. Pay it down below 30%.",
                )
            )
        elif util is not None and util > MODERATE_UTILIZATION_PCT:
            tips.append(
                Tip(
                    kind="moderate_utilization",
                    severity="warning",
                    icon="⚠️",
                    title="Utilization Above 30%",
                    message=f"Your {util}% utilization rate may impact your credit score. Aim for under 30%.",
                )
            )

    return UtilizationReport(
        card_key=card.card_key(),
        utilization_percent=util,
        available_credit=card.available_credit,
        tips=tips,
    )


def analyze_portfolio(cards: Iterable[Card]) -> list[UtilizationReport]:
    return [analyze(c) for c in cards]


def overall_utilization(cards: Iterable[Card]) -> Optional[float]:
    cards = list(cards)
    total_limit = sum(c.credit_limit for c in cards)
    if total_limit <= 0:
        return None
    return round(sum(c.current_balance for c in cards) / total_limit * 100, 1)
