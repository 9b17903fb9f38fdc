from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from .models import Card


logger = logging.getLogger(__name__)


def load_cards_file(path: Union[str, Path]) -> list[Card]:
    """
    Read cards from a YAML (or JSON, which YAML parses too) file.

    The file holds either a list of card mappings or a mapping with a `cards:` list.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or []
    if isinstance(raw, dict):
        raw = raw.get("cards") or []
    if not isinstance(raw, list):
        raise ValueError(f"{p}: expected a list of cards")

    cards: list[Card] = []
    for idx, item in enumerate(raw):
        try:
            cards.append(Card.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"{p}: card #{idx + 1} is invalid: {e}") from e

    keys = [c.card_key() for c in cards]
    dupes = sorted({k for k in keys if keys.count(k) > 1})
    if dupes:
        raise ValueError(f"{p}: duplicate card ids/names: {', '.join(dupes)}")

    logger.debug("Loaded %d cards from %s", len(cards), p)
    return cards
