"""Shared fixtures: config, a fresh SQLite store per test, and record builders."""

from decimal import Decimal

import pytest

from hedge_match.config import MatchingConfigManager
from hedge_match.main import MatchingEngine
from hedge_match.models import (
    HedgeDirection,
    HedgeExecution,
    Order,
    PricingType,
    Shipment,
    Ticket,
    TicketSide,
    derive_hedge_status,
)
from hedge_match.persistence import SQLiteMatchingStore


def D(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def config_manager():
    return MatchingConfigManager()


@pytest.fixture
def store(tmp_path):
    return SQLiteMatchingStore(tmp_path / "test.db")


@pytest.fixture
def engine(store, config_manager):
    return MatchingEngine(config_manager=config_manager, store=store)


@pytest.fixture
def make_ticket():
    def _make(ticket_id, side, price, quantity, remaining=None, commodity="Copper", **kwargs):
        fields = dict(
            id=ticket_id,
            side=TicketSide(side),
            commodity=commodity,
            quantity=D(quantity),
            remaining_quantity=D(quantity if remaining is None else remaining),
            pricing_type=PricingType.FIXED,
            signed_price=None if price is None else D(price),
        )
        fields.update(kwargs)
        return Ticket(**fields)

    return _make


@pytest.fixture
def make_hedge():
    def _make(hedge_id, direction, quantity, open_quantity=None, price=9000, commodity="Copper", source_ref=None):
        open_qty = D(quantity if open_quantity is None else open_quantity)
        return HedgeExecution(
            id=hedge_id,
            direction=HedgeDirection(direction),
            commodity=commodity,
            quantity=D(quantity),
            open_quantity=open_qty,
            executed_price=D(price),
            broker="Marex",
            status=derive_hedge_status(open_qty, D(quantity)),
            source_ref=source_ref,
        )

    return _make


@pytest.fixture
def seeded_order(store):
    """Order 10001 (100 MT Copper) with shipments 1 (60 MT) and 2 (40 MT)."""
    order = store.persist_order(
        Order(
            id="10001",
            commodity="Copper",
            allocated_quantity=D(100),
            buy_price=D(450),
            sell_price=D(515),
            margin=D("0.1444"),
        )
    )
    store.add_shipment(Shipment(id=1, order_id=order.id, quantity=D(60), name="BL-001"))
    store.add_shipment(Shipment(id=2, order_id=order.id, quantity=D(40), name="BL-002"))
    return order
