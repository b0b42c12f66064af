"""Tests for hedge execution status rules."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from hedge_match.models import HedgeDirection, HedgeExecution, HedgeStatus, parse_hedge_status


def _hedge(open_quantity, **changes):
    fields = {
        "id": "HX-1",
        "direction": HedgeDirection.BUY,
        "commodity": "Copper",
        "quantity": Decimal("10"),
        "open_quantity": Decimal(open_quantity),
        "executed_price": Decimal("9000"),
    }
    fields.update(changes)
    return HedgeExecution(**fields)


@pytest.mark.parametrize(
    "open_quantity,expected",
    [("10", HedgeStatus.OPEN), ("4", HedgeStatus.PARTIALLY_CLOSED), ("0", HedgeStatus.CLOSED)],
)
def test_status_derived_when_omitted(open_quantity, expected):
    assert _hedge(open_quantity).status == expected


@pytest.mark.parametrize(
    "open_quantity,status",
    [("10", HedgeStatus.CLOSED), ("4", HedgeStatus.OPEN), ("0", HedgeStatus.PARTIALLY_CLOSED)],
)
def test_status_must_match_open_quantity(open_quantity, status):
    with pytest.raises(ValidationError, match="does not match open quantity"):
        _hedge(open_quantity, status=status)


def test_open_quantity_above_trade_quantity():
    with pytest.raises(ValidationError, match="exceeds trade quantity"):
        _hedge("11")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("PARTIALLY_CLOSED", HedgeStatus.PARTIALLY_CLOSED),
        ("PartiallyClosed", HedgeStatus.PARTIALLY_CLOSED),
        ("partially closed", HedgeStatus.PARTIALLY_CLOSED),
        ("Open", HedgeStatus.OPEN),
        ("closed", HedgeStatus.CLOSED),
    ],
)
def test_parse_hedge_status(value, expected):
    assert parse_hedge_status(value) == expected


def test_parse_unknown_hedge_status():
    with pytest.raises(ValueError, match="Unknown hedge status"):
        parse_hedge_status("Settled")
