"""Tests for hedge eligibility."""
from datetime import datetime

import pytest

from hedge_match.core import HedgeEligibilityResolver
from hedge_match.errors import InputError
from hedge_match.models import HedgeDirection, OrderRef, PhysicalSide, ShipmentRef


@pytest.fixture
def resolver(store):
    return HedgeEligibilityResolver(store)


@pytest.fixture
def hedges(seeded_order, store, make_hedge):
    store.add_hedge(make_hedge("ORD", "Buy", 40, source_ref=OrderRef(id="10001")))
    store.add_hedge(make_hedge("SHIP1", "Buy", 20, open_quantity=5, source_ref=ShipmentRef(id=1)))
    store.add_hedge(make_hedge("SHIP2", "Buy", 20, source_ref=ShipmentRef(id=2)))
    store.add_hedge(make_hedge("FREE", "Buy", 10))
    store.add_hedge(make_hedge("CLOSED", "Buy", 10, open_quantity=0))
    store.add_hedge(make_hedge("SHORT", "Sell", 10, source_ref=OrderRef(id="10001")))
    store.add_hedge(make_hedge("ZINC", "Buy", 10, commodity="Zinc"))
    store.add_hedge(
        make_hedge("GONE", "Buy", 10).model_copy(update={"deleted_at": datetime(2024, 1, 1)})
    )


def test_direction_is_opposite_of_physical_side():
    assert HedgeEligibilityResolver.hedge_direction_for(PhysicalSide.SELL) == HedgeDirection.BUY
    assert HedgeEligibilityResolver.hedge_direction_for(PhysicalSide.BUY) == HedgeDirection.SELL
    assert HedgeEligibilityResolver.hedge_direction_for("sell") == HedgeDirection.BUY


def test_unscoped_returns_all_open_same_commodity(hedges, resolver):
    eligible = resolver.resolve("Copper", PhysicalSide.SELL)
    assert {h.id for h in eligible} == {"ORD", "SHIP1", "SHIP2", "FREE"}


def test_buy_side_gets_sell_hedges(hedges, resolver):
    assert [h.id for h in resolver.resolve("Copper", PhysicalSide.BUY)] == ["SHORT"]


def test_open_quantity_is_annotated(hedges, resolver):
    by_id = {h.id: h for h in resolver.resolve("Copper", PhysicalSide.SELL)}
    assert str(by_id["SHIP1"].open_quantity) == "5"
    assert by_id["SHIP1"].execution.quantity == 20


def test_shipment_scope_includes_parent_order_hedges(hedges, resolver):
    eligible = resolver.resolve("Copper", PhysicalSide.SELL, scope=ShipmentRef(id=1))
    assert {h.id for h in eligible} == {"ORD", "SHIP1"}


def test_order_scope_excludes_shipment_hedges(hedges, resolver):
    eligible = resolver.resolve("Copper", PhysicalSide.SELL, scope=OrderRef(id="10001"))
    assert [h.id for h in eligible] == ["ORD"]


def test_show_all_ignores_scope(hedges, resolver):
    eligible = resolver.resolve("copper", PhysicalSide.SELL, scope=ShipmentRef(id=1), show_all=True)
    assert {h.id for h in eligible} == {"ORD", "SHIP1", "SHIP2", "FREE"}


def test_commodity_required(resolver):
    with pytest.raises(InputError):
        resolver.resolve("", PhysicalSide.SELL)
