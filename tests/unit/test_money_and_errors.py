from decimal import Decimal

import pytest

from portfolio_ledger.domain.errors import (
    ConcurrentModification,
    InsufficientFunds,
    InvalidInput,
    ProductUnavailable,
)
from portfolio_ledger.domain.models import LedgerRecord, LedgerStatus, OrderSide, Position
from portfolio_ledger.domain.models.money import (
    cost,
    money,
    money_down,
    money_up,
    pct,
    price,
    to_decimal,
    units,
)


def test_floats_go_through_their_string_form():
    assert to_decimal(0.1) == Decimal("0.1")
    assert money(0.1 + 0.2) == Decimal("0.30")


@pytest.mark.parametrize(
    "fn,value,expected",
    [
        (money, "2.345", Decimal("2.35")),
        (money, "-2.345", Decimal("-2.35")),
        (units, "1.23455", Decimal("1.2346")),
        (price, "845.20", Decimal("845.2000")),
        (cost, "1.000000005", Decimal("1.00000001")),
    ],
)
def test_quantization_rounds_half_up(fn, value, expected):
    assert fn(value) == expected


def test_pct_zero_denominator_branch():
    assert pct(Decimal("10"), Decimal("0")) == Decimal("0.00")
    assert pct(Decimal("1"), Decimal("3")) == Decimal("33.33")


def test_position_rejects_empty_holding():
    with pytest.raises(ValueError):
        Position("u1", "TCS", Decimal("0"), Decimal("100"), Decimal("0"))


def test_ledger_record_rejects_non_positive_price():
    with pytest.raises(ValueError):
        LedgerRecord(
            user_id="u1",
            product_id="TCS",
            side=OrderSide.BUY,
            units=Decimal("1"),
            unit_price=Decimal("0"),
            fees=Decimal("0"),
            total_amount=Decimal("0"),
            realized_return=Decimal("0"),
            balance_after=Decimal("0"),
            status=LedgerStatus.COMPLETED,
            executed_at=None,
        )


def test_error_payloads_are_json_ready():
    payload = InsufficientFunds(required=Decimal("1500.00"), available=Decimal("1000.00")).to_dict()

    assert payload == {
        "code": "INSUFFICIENT_FUNDS",
        "message": "Insufficient wallet balance: required 1500.00, available 1000.00",
        "details": {"required": 1500.0, "available": 1000.0},
    }


def test_only_conflicts_are_retryable():
    assert ConcurrentModification("u1", 3).retryable is True
    assert InvalidInput("bad").retryable is False
    assert ProductUnavailable("TCS").details == {"product_id": "TCS"}


def test_directional_cash_rounding():
    assert money_up("0.0049") == Decimal("0.01")
    assert money_up("2.30") == Decimal("2.30")
    assert money_down("0.0149") == Decimal("0.01")
    assert money_down("2.309") == Decimal("2.30")
