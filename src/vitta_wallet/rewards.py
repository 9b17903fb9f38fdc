from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import CATEGORY_ALIASES, SPEND_CATEGORIES, Card, RewardPick


logger = logging.getLogger(__name__)


def normalize_category(category: Optional[str]) -> str:
    key = (category or "default").strip().lower()
    key = CATEGORY_ALIASES.get(key, key)
    if key not in SPEND_CATEGORIES:
        raise ValueError(f"Unknown spend category {category!r} (expected one of: {', '.join(SPEND_CATEGORIES)})")
    return key


def effective_multiplier(card: Card, category: str) -> float:
    rewards = card.reward_structure
    value = rewards.get(category)
    if value is None:
        value = rewards.get("default")
    if value is None:
        return 1.0
    return float(value)


def _tie_break_key(pick: RewardPick) -> tuple:
    card = pick.card
    created = card.created_at
    return (
        -pick.multiplier,
        -card.available_credit,
        card.apr,
        # Cards without a creation timestamp sort after those with one.
        created is None,
        created.timestamp() if created else 0.0,
        card.card_key(),
    )


def rank_cards(cards: Iterable[Card], category: str, amount: float = 0.0) -> list[RewardPick]:
    """
    Every card ordered best-first for `category`.

    Ordering: highest multiplier, then most available credit, then lowest APR, then oldest card.
    The order does not depend on the order of `cards`.
    """
    cat = normalize_category(category)
    picks = []
    for card in cards:
        multiplier = effective_multiplier(card, cat)
        picks.append(
            RewardPick(
                card=card,
                category=cat,
                multiplier=multiplier,
                estimated_reward=round(amount * multiplier / 100, 2) if amount > 0 else 0.0,
            )
        )
    picks.sort(key=_tie_break_key)
    return picks


def select_best_card(cards: Iterable[Card], category: str) -> Optional[Card]:
    ranked = rank_cards(cards, category)
    if not ranked:
        return None
    best = ranked[0]
    logger.debug("Best card for %s: %s (%.1fx)", best.category, best.card.card_key(), best.multiplier)
    return best.card
