"""Tests for hedge allocation and price fixing."""
from datetime import date
from decimal import Decimal

import pytest

from hedge_match.core import AllocationEngine
from hedge_match.errors import CapacityError, InputError, NotFoundError
from hedge_match.models import (
    AllocationRequest,
    EligibleHedge,
    FixingRequest,
    HedgeStatus,
    OrderRef,
    PhysicalSide,
    ShipmentRef,
    TicketRef,
)


ORDER = OrderRef(id="10001")


@pytest.fixture
def allocator(store, config_manager):
    return AllocationEngine(store, config_manager=config_manager)


def _request(ref, *allocations, price="9100", side=PhysicalSide.SELL, **kwargs):
    return FixingRequest(
        ref=ref,
        side=side,
        commodity="Copper",
        allocations=[
            AllocationRequest(hedge_execution_id=hedge_id, quantity=Decimal(str(qty)))
            for hedge_id, qty in allocations
        ],
        fixing_price=None if price is None else Decimal(price),
        fixed_at=date(2024, 5, 2),
        **kwargs,
    )


def _state(store):
    with store.db.read() as conn:
        counts = tuple(
            conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in ("pricing_fixings", "hedge_links")
        )
        hedges = conn.execute("SELECT id, open_quantity, status FROM hedge_executions ORDER BY id").fetchall()
    return counts, [tuple(r) for r in hedges]


def test_full_allocation_closes_hedge(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    ref = ShipmentRef(id=2)

    fixing = allocator.fix_price(_request(ref, ("H1", 40)))

    assert fixing.id is not None
    assert fixing.quantity == Decimal("40")
    assert fixing.final_price == Decimal("9100")
    assert fixing.currency == "USD"
    hedge = store.get_hedge("H1")
    assert hedge.open_quantity == Decimal("0")
    assert hedge.status == HedgeStatus.CLOSED
    assert hedge.closed_price == Decimal("9100")
    assert hedge.closed_at is not None
    assert allocator.available_unfixed_quantity(ref) == Decimal("0")


def test_partial_allocation_leaves_hedge_open(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))

    fixing = allocator.fix_price(_request(ORDER, ("H1", 15)))

    hedge = store.get_hedge("H1")
    assert hedge.open_quantity == Decimal("25")
    assert hedge.status == HedgeStatus.PARTIALLY_CLOSED
    assert hedge.closed_price is None
    links = store.links_for_fixing(fixing.id)
    assert [(l.hedge_execution_id, l.allocated_quantity) for l in links] == [("H1", Decimal("15"))]
    assert links[0].exec_price == Decimal("9000")
    assert links[0].fixing_price == Decimal("9100")


def test_multiple_hedges_in_one_fixing(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 20, source_ref=ORDER))
    store.add_hedge(make_hedge("H2", "Buy", 30, price=9050, source_ref=ORDER))

    fixing = allocator.fix_price(_request(ShipmentRef(id=1), ("H1", 20), ("H2", 25)))

    assert fixing.quantity == Decimal("45")
    assert store.get_hedge("H1").status == HedgeStatus.CLOSED
    assert store.get_hedge("H2").open_quantity == Decimal("5")
    assert allocator.available_unfixed_quantity(ShipmentRef(id=1)) == Decimal("15")


def test_capacity_violations_are_reported_together(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("BIG", "Buy", 100, source_ref=ORDER))
    store.add_hedge(make_hedge("H2", "Buy", 30, source_ref=ORDER))
    allocator.fix_price(_request(ORDER, ("BIG", 60)))
    before = _state(store)

    with pytest.raises(CapacityError) as exc_info:
        allocator.fix_price(_request(ORDER, ("H2", 50)))

    violations = {v.kind: v for v in exc_info.value.violations}
    assert set(violations) == {"physical", "hedge"}
    assert violations["physical"].item == "Order:10001"
    assert violations["physical"].limit == Decimal("40")
    assert violations["hedge"].item == "H2"
    assert violations["hedge"].limit == Decimal("30")
    assert _state(store) == before


@pytest.mark.parametrize(
    "allocations,price",
    [
        ((("H1", 10),), "0"),
        ((("H1", 10),), "-5"),
        ((("H1", 10),), None),
        ((("H1", 0),), "9100"),
        ((("H1", -3),), "9100"),
        ((("H1", 5), ("H1", 5)), "9100"),
        ((), "9100"),
    ],
)
def test_invalid_input_changes_nothing(seeded_order, store, allocator, make_hedge, allocations, price):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    before = _state(store)

    with pytest.raises(InputError):
        allocator.fix_price(_request(ShipmentRef(id=1), *allocations, price=price))

    assert _state(store) == before


def test_missing_commodity_rejected(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    request = _request(ShipmentRef(id=1), ("H1", 10)).model_copy(update={"commodity": "  "})
    with pytest.raises(InputError):
        allocator.fix_price(request)


def test_unknown_hedge_rejected(seeded_order, allocator):
    with pytest.raises(InputError) as exc_info:
        allocator.fix_price(_request(ShipmentRef(id=1), ("NOPE", 10)))
    assert exc_info.value.field == "hedge_execution_id"


def test_same_direction_hedge_rejected(seeded_order, store, allocator, make_hedge):
    """A Sell physical is hedged with Buy executions only."""
    store.add_hedge(make_hedge("S1", "Sell", 40, source_ref=ORDER))
    with pytest.raises(InputError):
        allocator.fix_price(_request(ShipmentRef(id=1), ("S1", 10)))


def test_unknown_reference_not_found(store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 40, source_ref=ORDER))
    with pytest.raises(NotFoundError):
        allocator.fix_price(_request(ShipmentRef(id=99), ("H1", 10)))


def test_cumulative_fixings_never_exceed_physical(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 100, source_ref=ORDER))
    ref = ShipmentRef(id=1)

    allocator.fix_price(_request(ref, ("H1", 35)))
    allocator.fix_price(_request(ref, ("H1", 25)))
    with pytest.raises(CapacityError):
        allocator.fix_price(_request(ref, ("H1", 1)))

    assert allocator.fixed_quantity(ref) == Decimal("60")
    hedge = store.get_hedge("H1")
    assert hedge.open_quantity == Decimal("40")
    assert hedge.open_quantity + sum(
        l.allocated_quantity for l in store.fetch_hedge_links([ref])
    ) == hedge.quantity


def test_soft_delete_frees_physical_capacity(seeded_order, store, allocator, make_hedge):
    store.add_hedge(make_hedge("H1", "Buy", 100, source_ref=ORDER))
    ref = ShipmentRef(id=2)
    fixing = allocator.fix_price(_request(ref, ("H1", 40)))
    assert allocator.available_unfixed_quantity(ref) == Decimal("0")

    store.soft_delete_fixing(fixing.id)

    assert allocator.available_unfixed_quantity(ref) == Decimal("40")
    assert store.get_hedge("H1").open_quantity == Decimal("60")


def test_show_all_allows_unscoped_hedge(seeded_order, store, allocator, make_hedge):
    other = ShipmentRef(id=2)
    store.add_hedge(make_hedge("H2", "Buy", 20, source_ref=other))
    ref = ShipmentRef(id=1)

    fixing = allocator.fix_price(_request(ref, ("H2", 10), show_all_hedges=True))

    assert fixing.quantity == Decimal("10")


def test_suggest_allocation_is_min_of_available_and_open(seeded_order, allocator, make_hedge):
    small = EligibleHedge(execution=make_hedge("H1", "Buy", 40, open_quantity=25), open_quantity=Decimal("25"))
    large = EligibleHedge(execution=make_hedge("H2", "Buy", 500), open_quantity=Decimal("500"))

    assert allocator.suggest_allocation(ShipmentRef(id=2), small) == Decimal("25")
    assert allocator.suggest_allocation(ShipmentRef(id=2), large) == Decimal("40")


def test_ticket_level_fixing(store, allocator, make_ticket, make_hedge):
    store.add_ticket(make_ticket(8, "Buy", 450, 25))
    store.add_hedge(make_hedge("S1", "Sell", 30, source_ref=TicketRef(id=8)))
    ref = TicketRef(id=8)

    allocator.fix_price(_request(ref, ("S1", 25), side=PhysicalSide.BUY))

    assert allocator.available_unfixed_quantity(ref) == Decimal("0")
    assert store.get_hedge("S1").open_quantity == Decimal("5")
