from __future__ import annotations

from vitta_wallet.optimizer import avalanche_order, monthly_interest, optimize


def test_monthly_interest() -> None:
    assert monthly_interest(1000, 24) == 20.0
    assert monthly_interest(1000, 0) == 0.0
    assert monthly_interest(0, 24) == 0.0


def test_highest_apr_gets_paid_first(make_card) -> None:
    cards = [
        make_card(card_id="zero", current_balance=500, apr=0),
        make_card(card_id="high", current_balance=1000, apr=24),
    ]
    plan = optimize(cards, 800)

    assert plan.as_mapping() == {"high": 800.0, "zero": 0.0}
    high, zero = plan.allocations
    assert high.card_key == "high"
    assert high.residual_balance == 200.0
    assert zero.residual_balance == 500.0
    assert plan.total_allocated == 800.0
    assert plan.surplus == 0.0
    assert plan.projected_interest == 4.0
    assert plan.interest_if_unpaid == 20.0
    assert plan.interest_avoided == 16.0


def test_budget_covers_everything(make_card) -> None:
    cards = [
        make_card(card_id="a", current_balance=1000, apr=24),
        make_card(card_id="b", current_balance=500, apr=0),
    ]
    plan = optimize(cards, 2000)
    assert [a.residual_balance for a in plan.allocations] == [0.0, 0.0]
    assert plan.total_allocated == 1500.0
    assert plan.surplus == 500.0
    assert plan.projected_interest == 0.0


def test_no_budget_pays_nothing(make_card) -> None:
    cards = [make_card(card_id="a", current_balance=1000, apr=24)]
    for budget in (0, -100):
        plan = optimize(cards, budget)
        assert plan.as_mapping() == {"a": 0.0}
        assert plan.allocations[0].residual_balance == 1000.0
        assert plan.projected_interest == 20.0
        assert plan.total_allocated == 0.0
        assert plan.surplus == 0.0


def test_cents_are_exact(make_card) -> None:
    cards = [
        make_card(card_id="a", current_balance=100.10, apr=20),
        make_card(card_id="b", current_balance=200.20, apr=10),
    ]
    plan = optimize(cards, 150.15)
    assert plan.as_mapping() == {"a": 100.1, "b": 50.05}
    assert plan.allocations[1].residual_balance == 150.15


def test_avalanche_order_is_stable_for_equal_aprs(make_card) -> None:
    cards = [
        make_card(card_id="first", apr=18),
        make_card(card_id="free", apr=0),
        make_card(card_id="second", apr=18),
        make_card(card_id="top", apr=29.99),
    ]
    assert [cards[i].card_id for i in avalanche_order(cards)] == ["top", "first", "second", "free"]


def test_reserve_minimums(make_card) -> None:
    cards = [
        make_card(card_id="high", current_balance=1000, apr=24),
        make_card(card_id="low", current_balance=500, apr=10, amount_to_pay=50),
    ]
    assert optimize(cards, 300).as_mapping() == {"high": 300.0, "low": 0.0}
    assert optimize(cards, 300, reserve_minimums=True).as_mapping() == {"high": 250.0, "low": 50.0}
    # A budget smaller than the minimums goes entirely to minimums.
    assert optimize(cards, 30, reserve_minimums=True).as_mapping() == {"high": 0.0, "low": 30.0}


def test_empty_wallet() -> None:
    plan = optimize([], 500)
    assert plan.allocations == []
    assert plan.surplus == 500.0
