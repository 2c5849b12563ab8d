from decimal import Decimal

from portfolio_ledger.domain.models import Position
from portfolio_ledger.domain.services.valuation_service import summarize, value_position


def _position(product_id, units, average_cost):
    units, average_cost = Decimal(units), Decimal(average_cost)
    return Position("u1", product_id, units, average_cost, units * average_cost)


def test_value_position_gain():
    valuation = value_position(_position("TCS", "15", "150"), Decimal("200"))

    assert valuation.current_value == Decimal("3000.00")
    assert valuation.unrealized_return == Decimal("750.00")
    assert valuation.return_pct == Decimal("33.33")
    assert valuation.product_id == "TCS"


def test_value_position_loss():
    valuation = value_position(_position("INFY", "10", "300"), Decimal("270"))

    assert valuation.unrealized_return == Decimal("-300.00")
    assert valuation.return_pct == Decimal("-10.00")


def test_summary_totals_across_positions():
    positions = [_position("TCS", "10", "100"), _position("INFY", "5", "300")]
    prices = {"TCS": Decimal("110"), "INFY": Decimal("330")}

    summary = summarize(positions, prices)

    assert summary.total_invested == Decimal("2500.00")
    assert summary.total_current_value == Decimal("2750.00")
    assert summary.total_return == Decimal("250.00")
    assert summary.total_return_pct == Decimal("10.00")
    assert [h.product_id for h in summary.holdings] == ["TCS", "INFY"]
    assert summary.unpriced_product_ids == []


def test_summary_excludes_positions_without_price():
    positions = [
        _position("TCS", "10", "100"),
        _position("INFY", "5", "300"),
        _position("GONE", "1", "50"),
    ]
    prices = {"TCS": Decimal("120"), "GONE": Decimal("0")}

    summary = summarize(positions, prices)

    assert summary.unpriced_product_ids == ["INFY", "GONE"]
    assert summary.total_invested == Decimal("1000.00")
    assert summary.total_current_value == Decimal("1200.00")
    assert len(summary.holdings) == 1


def test_empty_portfolio_has_zero_return_pct():
    summary = summarize([], {})

    assert summary.total_invested == Decimal("0")
    assert summary.total_return_pct == Decimal("0")
    assert summary.holdings == []


def test_total_return_matches_sum_of_holding_returns():
    # Invested capital carries sub-cent precision; each holding return rounds on its own
    positions = [
        Position("u1", "TCS", Decimal("1"), Decimal("100.005"), Decimal("100.005")),
        Position("u1", "INFY", Decimal("1"), Decimal("100.005"), Decimal("100.005")),
    ]
    prices = {"TCS": Decimal("100"), "INFY": Decimal("100")}

    summary = summarize(positions, prices)

    assert [h.unrealized_return for h in summary.holdings] == [Decimal("-0.01"), Decimal("-0.01")]
    assert summary.total_return == Decimal("-0.02")
    assert summary.total_return == sum(h.unrealized_return for h in summary.holdings)
