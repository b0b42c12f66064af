"""Tests for net hedge exposure and open-hedge checks."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from hedge_match.core import AllocationEngine, ExposureAggregator, aggregate_exposure
from hedge_match.errors import NotFoundError
from hedge_match.models import (
    AllocationRequest,
    ExposureLabel,
    FixingRequest,
    HedgeDirection,
    HedgeLink,
    OrderRef,
    PhysicalSide,
    ShipmentRef,
    TicketRef,
)

ORDER = OrderRef(id="10001")


def _link(hedge_id, ref, quantity="1", deleted=False):
    return HedgeLink(
        hedge_execution_id=hedge_id,
        ref=ref,
        allocated_quantity=Decimal(quantity),
        side=PhysicalSide.SELL,
        direction=HedgeDirection.BUY,
        exec_price=Decimal("9000"),
        fixing_price=Decimal("9100"),
        commodity="Copper",
        deleted_at=datetime(2024, 1, 1) if deleted else None,
    )


def _fix(allocator, ref, side, hedge_id, quantity):
    return allocator.fix_price(
        FixingRequest(
            ref=ref,
            side=side,
            commodity="Copper",
            allocations=[AllocationRequest(hedge_execution_id=hedge_id, quantity=Decimal(quantity))],
            fixing_price=Decimal("9100"),
            fixed_at=date(2024, 5, 2),
        )
    )


@pytest.fixture
def allocator(store, config_manager):
    return AllocationEngine(store, config_manager=config_manager)


@pytest.fixture
def aggregator(store):
    return ExposureAggregator(store)


# -- Pure aggregation --

def test_long_and_short(make_hedge):
    buy = make_hedge("B", "Buy", 40, open_quantity=25)
    sell = make_hedge("S", "Sell", 50, open_quantity=10)
    links = [_link("B", ORDER), _link("S", ShipmentRef(id=1))]

    exposure = aggregate_exposure("10001", links, [buy, sell])

    assert exposure.label == ExposureLabel.LONG
    assert exposure.net == Decimal("15")
    assert exposure.display == "Long 15.00 MT"
    assert [c.signed_quantity for c in exposure.contributions] == [Decimal("25"), Decimal("-10")]

    short = aggregate_exposure("10001", links[1:], [sell])
    assert short.label == ExposureLabel.SHORT
    assert short.net == Decimal("-10")


def test_below_epsilon_is_flat(make_hedge):
    buy = make_hedge("B", "Buy", 40, open_quantity="10.005")
    sell = make_hedge("S", "Sell", 40, open_quantity=10)

    exposure = aggregate_exposure("10001", [_link("B", ORDER), _link("S", ORDER)], [buy, sell])

    assert exposure.label == ExposureLabel.FLAT
    assert exposure.net == Decimal("0")
    assert exposure.display == "Flat"


def test_execution_counted_once_across_links(make_hedge):
    buy = make_hedge("B", "Buy", 40, open_quantity=20)
    links = [_link("B", ORDER), _link("B", ShipmentRef(id=1)), _link("B", ShipmentRef(id=2))]

    exposure = aggregate_exposure("10001", links, [buy])

    assert exposure.net == Decimal("20")
    assert len(exposure.contributions) == 1


def test_deleted_links_and_executions_ignored(make_hedge):
    buy = make_hedge("B", "Buy", 40)
    gone = make_hedge("G", "Sell", 40).model_copy(update={"deleted_at": datetime(2024, 1, 1)})
    links = [_link("B", ORDER, deleted=True), _link("G", ORDER), _link("X", ORDER)]

    exposure = aggregate_exposure("10001", links, [buy, gone])

    assert exposure.label == ExposureLabel.FLAT
    assert exposure.contributions == []


# -- Through the store --

@pytest.fixture
def hedged_order(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    store.add_hedge(make_hedge("H2", "Sell", 50, source_ref=ORDER))
    first = _fix(allocator, ShipmentRef(id=1), PhysicalSide.SELL, "H1", "15")
    second = _fix(allocator, ORDER, PhysicalSide.BUY, "H2", "10")
    return first, second


def test_net_exposure_over_order_and_shipments(hedged_order, aggregator):
    exposure = aggregator.net_exposure("10001")

    assert exposure.label == ExposureLabel.SHORT
    assert exposure.net == Decimal("-15")
    assert exposure.display == "Short 15.00 MT"
    levels = {c.hedge_execution_id: c.link_level for c in exposure.contributions}
    assert levels == {"H1": "Shipment", "H2": "Order"}


def test_net_exposure_skips_deleted_fixings(hedged_order, store, aggregator):
    _, second = hedged_order
    store.soft_delete_fixing(second.id)

    exposure = aggregator.net_exposure("10001")

    assert exposure.display == "Long 25.00 MT"


def test_unhedged_order_is_flat(seeded_order, aggregator):
    assert aggregator.net_exposure("10001").label == ExposureLabel.FLAT


def test_unknown_order(store, aggregator):
    with pytest.raises(NotFoundError):
        aggregator.net_exposure("99999")


# -- Open hedge checks --

def test_shipment_link_does_not_mark_order(seeded_order, store, allocator, aggregator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    _fix(allocator, ShipmentRef(id=1), PhysicalSide.SELL, "H1", "15")

    assert aggregator.has_open_hedge(ShipmentRef(id=1)) is True
    assert aggregator.has_open_hedge(ShipmentRef(id=2)) is False
    assert aggregator.has_open_hedge(ORDER) is False


def test_order_link_marks_every_shipment(hedged_order, aggregator):
    assert aggregator.has_open_hedge(ORDER) is True
    assert aggregator.has_open_hedge(ShipmentRef(id=2)) is True


def test_closed_hedge_is_not_open(seeded_order, store, allocator, aggregator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    _fix(allocator, ShipmentRef(id=1), PhysicalSide.SELL, "H1", "40")

    assert aggregator.has_open_hedge(ShipmentRef(id=1)) is False


def test_ticket_without_links(store, aggregator, make_ticket):
    store.add_ticket(make_ticket(8, "Buy", 450, 25))
    assert aggregator.has_open_hedge(TicketRef(id=8)) is False
