from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from vitta_wallet.models import Card  # noqa: E402


@pytest.fixture
def make_card() -> Callable[..., Card]:
    def _make(**overrides: Any) -> Card:
        data: dict[str, Any] = {
            "card_id": "c1",
            "card_name": "Everyday Visa",
            "card_network": "visa",
            "credit_limit": 5000,
            "current_balance": 0,
            "apr": 20,
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Card.model_validate(data)

    return _make
