"""
Payment allocation for a fixed monthly budget (debt avalanche).

Highest-APR balances are paid first; zero-APR balances go last because they cost nothing to carry.
For a single cycle with no prepayment penalties this ordering minimizes the interest charged on
what's left, so a greedy pass is all that's needed.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .models import Card, CardAllocation, OptimizationPlan
from .util.money import cents_to_dollars, dollars_to_cents


logger = logging.getLogger(__name__)


def monthly_interest(balance: float, apr: float) -> float:
    """One cycle of simple interest: balance x APR / 100 / 12."""
    if balance <= 0 or apr <= 0:
        return 0.0
    return round(balance * apr / 100 / 12, 2)


def avalanche_order(cards: list[Card]) -> list[int]:
    """Indexes of `cards`, highest APR first, zero-APR cards last, input order on ties."""
    return sorted(range(len(cards)), key=lambda i: (cards[i].apr <= 0, -cards[i].apr, i))


def optimize(cards: Iterable[Card], monthly_budget: float, *, reserve_minimums: bool = False) -> OptimizationPlan:
    """
    Split `monthly_budget` across card balances.

    With `reserve_minimums`, each card's amount_to_pay is funded before any extra goes to the
    highest APR, so no card misses its minimum while the budget allows it.
    """
    cards = list(cards)
    order = avalanche_order(cards)
    budget_cents = dollars_to_cents(monthly_budget)

    balances = [dollars_to_cents(c.current_balance) for c in cards]
    paid = [0] * len(cards)
    remaining = max(budget_cents, 0)

    if reserve_minimums:
        for i in order:
            if remaining <= 0:
                break
            pay = min(dollars_to_cents(cards[i].amount_to_pay), balances[i], remaining)
            paid[i] += pay
            remaining -= pay

    for i in order:
        if remaining <= 0:
            break
        pay = min(balances[i] - paid[i], remaining)
        paid[i] += pay
        remaining -= pay

    allocations: list[CardAllocation] = []
    for i in order:
        card = cards[i]
        residual = cents_to_dollars(balances[i] - paid[i])
        allocations.append(
            CardAllocation(
                card_key=card.card_key(),
                card_name=card.display_name(),
                apr=card.apr,
                balance=cents_to_dollars(balances[i]),
                payment=cents_to_dollars(paid[i]),
                residual_balance=residual,
                projected_interest=monthly_interest(residual, card.apr),
            )
        )

    projected = round(sum(a.projected_interest for a in allocations), 2)
    baseline = round(sum(monthly_interest(a.balance, a.apr) for a in allocations), 2)

    plan = OptimizationPlan(
        budget=cents_to_dollars(budget_cents),
        allocations=allocations,
        total_allocated=cents_to_dollars(sum(paid)),
        # Whatever is left once every balance is cleared; never pushed onto a card.
        surplus=cents_to_dollars(remaining),
        projected_interest=projected,
        interest_if_unpaid=baseline,
        interest_avoided=round(baseline - projected, 2),
    )
    logger.debug(
        "Optimized budget=%.2f allocated=%.2f surplus=%.2f interest=%.2f",
        plan.budget,
        plan.total_allocated,
        plan.surplus,
        plan.projected_interest,
    )
    return plan
