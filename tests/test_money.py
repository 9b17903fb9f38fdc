from __future__ import annotations

from vitta_wallet.util.money import cents_to_dollars, cents_to_money_str, dollars_to_cents, format_money, money_to_cents


def test_money_to_cents() -> None:
    assert money_to_cents("$3,040.16") == 304016
    assert money_to_cents("3040.16") == 304016
    assert money_to_cents("$0.37") == 37
    assert money_to_cents("(12.34)") == -1234
    assert money_to_cents("800") == 80000


def test_dollars_to_cents_avoids_float_noise() -> None:
    assert dollars_to_cents(0.1 + 0.2) == 30
    assert dollars_to_cents(1234.565) == 123457
    assert dollars_to_cents(0) == 0


def test_formatting() -> None:
    assert cents_to_money_str(123456) == "$1,234.56"
    assert cents_to_dollars(20050) == 200.5
    assert format_money(20) == "$20.00"
