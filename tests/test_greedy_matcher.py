"""Tests for the greedy two-sided ticket matcher and its ticket pool."""
from decimal import Decimal

import pytest

from hedge_match.config import MatchingConfigManager
from hedge_match.core import TicketPool
from hedge_match.errors import InputError, LiquidityError, MarginError, UnpriceableTicketError
from hedge_match.matchers import GreedyTicketMatcher
from hedge_match.models import OrderStatus, TicketAllocation, TicketSide, TicketStatus
from hedge_match.pricing import PricingPolicy


@pytest.fixture
def matcher(config_manager):
    return GreedyTicketMatcher(config_manager)


@pytest.fixture
def scenario(make_ticket):
    sells = [
        make_ticket(1, "Sell", 520, 30, incoterms="CIF", ship_to="Rotterdam"),
        make_ticket(2, "Sell", 500, 20, incoterms="CFR"),
    ]
    buys = [
        make_ticket(3, "Buy", 450, 40, incoterms="FOB", ship_from="Houston", metal_form="Cathode"),
    ]
    return buys, sells


# -- TicketPool --

def test_pool_keeps_discovery_order_and_skips_empty(make_ticket):
    pool = TicketPool(
        [make_ticket(3, "Buy", 450, 40), make_ticket(1, "Buy", 440, 10, remaining=0)],
        [make_ticket(2, "Sell", 500, 20)],
    )
    assert [t.id for t in pool.get_available_tickets(TicketSide.BUY)] == [3]
    assert pool.total_available(TicketSide.BUY) == Decimal("40")
    assert pool.available_quantity(1, TicketSide.BUY) == Decimal("0")
    assert pool.get_statistics()["original_buy_count"] == 2


def test_pool_record_allocations_is_all_or_nothing(make_ticket):
    pool = TicketPool([make_ticket(3, "Buy", 450, 40)], [make_ticket(2, "Sell", 500, 20)])
    too_much = [
        TicketAllocation(ticket_id=3, side=TicketSide.BUY, quantity=Decimal("10"), unit_price=Decimal("450")),
        TicketAllocation(ticket_id=2, side=TicketSide.SELL, quantity=Decimal("25"), unit_price=Decimal("500")),
    ]
    assert pool.record_allocations(too_much) is False
    assert pool.available_quantity(3, TicketSide.BUY) == Decimal("40")

    assert pool.record_allocations(too_much[:1]) is True
    assert pool.available_quantity(3, TicketSide.BUY) == Decimal("30")
    assert len(pool.get_statistics()["allocation_history"]) == 1


# -- Optimizer --

def test_scenario_selects_highest_sells_and_lowest_buys(matcher, scenario):
    buys, sells = scenario
    order = matcher.optimize("Copper", Decimal("40"), buys, sells)

    assert [(a.ticket_id, a.quantity) for a in order.sell_allocations] == [
        (1, Decimal("30")),
        (2, Decimal("10")),
    ]
    assert [(a.ticket_id, a.quantity) for a in order.buy_allocations] == [(3, Decimal("40"))]
    assert order.allocated_quantity == Decimal("40")
    # (520*30 + 500*10) / 40
    assert order.sell_price == Decimal("515")
    assert order.buy_price == Decimal("450")
    assert order.margin == Decimal("65") / Decimal("450")
    assert round(order.margin, 4) == Decimal("0.1444")


def test_order_metadata(matcher, scenario):
    buys, sells = scenario
    order = matcher.optimize("Copper", Decimal("40"), buys, sells)

    assert order.status == OrderStatus.ALLOCATED
    assert order.transaction_type == "B2B"
    assert order.product_details == "FOB / CIF"
    assert order.ship_from == "Houston"
    assert order.ship_to == "Rotterdam"
    assert order.metal_form == "Cathode"
    assert order.buy_ticket_ids == [3]
    assert order.sell_ticket_ids == [1, 2]


def test_order_id_is_five_digit_number(matcher, scenario):
    buys, sells = scenario
    order = matcher.optimize("Copper", Decimal("40"), buys, sells)
    assert order.id.isdigit()
    assert 10000 <= int(order.id) <= 99999


def test_optimizer_does_not_mutate_tickets(matcher, scenario):
    buys, sells = scenario
    matcher.optimize("Copper", Decimal("40"), buys, sells)
    assert [t.remaining_quantity for t in sells] == [Decimal("30"), Decimal("20")]
    assert buys[0].remaining_quantity == Decimal("40")


def test_insufficient_sell_liquidity(matcher, scenario):
    buys, sells = scenario
    with pytest.raises(LiquidityError) as exc_info:
        matcher.optimize("Copper", Decimal("60"), buys, sells)
    assert exc_info.value.side == "sell"
    assert exc_info.value.shortfall == Decimal("10")


def test_insufficient_buy_liquidity(matcher, scenario):
    buys, sells = scenario
    with pytest.raises(LiquidityError) as exc_info:
        matcher.optimize("Copper", Decimal("45"), buys, sells)
    assert exc_info.value.side == "buy"
    assert exc_info.value.shortfall == Decimal("5")


def test_empty_pool_fails_with_full_shortfall(matcher, scenario):
    buys, _ = scenario
    with pytest.raises(LiquidityError) as exc_info:
        matcher.optimize("Copper", Decimal("40"), buys, [])
    assert exc_info.value.side == "sell"
    assert exc_info.value.shortfall == Decimal("40")


def test_zero_remaining_tickets_are_skipped(matcher, make_ticket):
    sells = [make_ticket(1, "Sell", 900, 50, remaining=0), make_ticket(2, "Sell", 500, 20)]
    buys = [make_ticket(3, "Buy", 450, 20)]
    order = matcher.optimize("Copper", Decimal("20"), buys, sells)
    assert order.sell_ticket_ids == [2]


def test_equal_prices_keep_discovery_order(matcher, make_ticket):
    sells = [make_ticket(5, "Sell", 500, 10), make_ticket(4, "Sell", 500, 10)]
    buys = [make_ticket(9, "Buy", 400, 10), make_ticket(8, "Buy", 400, 10)]
    order = matcher.optimize("Copper", Decimal("10"), buys, sells)
    assert order.sell_ticket_ids == [5]
    assert order.buy_ticket_ids == [9]


def test_only_approved_tickets_of_the_commodity_are_used(matcher, make_ticket):
    sells = [
        make_ticket(1, "Sell", 900, 10, status=TicketStatus.PENDING),
        make_ticket(2, "Sell", 800, 10, commodity="Aluminium"),
        make_ticket(3, "Sell", 500, 10, commodity="copper"),
    ]
    buys = [make_ticket(4, "Buy", 400, 10)]
    order = matcher.optimize("Copper", Decimal("10"), buys, sells)
    assert order.sell_ticket_ids == [3]


def test_non_positive_margin_rejected(matcher, make_ticket):
    sells = [make_ticket(1, "Sell", 500, 10)]
    buys = [make_ticket(2, "Buy", 520, 10)]
    with pytest.raises(MarginError) as exc_info:
        matcher.optimize("Copper", Decimal("10"), buys, sells)
    assert exc_info.value.buy_price == Decimal("520")
    assert exc_info.value.sell_price == Decimal("500")


def test_equal_prices_are_not_a_margin(matcher, make_ticket):
    with pytest.raises(MarginError):
        matcher.optimize(
            "Copper", Decimal("10"), [make_ticket(2, "Buy", 500, 10)], [make_ticket(1, "Sell", 500, 10)]
        )


def test_zero_average_buy_price_rejected(matcher, make_ticket):
    """An unpriceable buy ticket prices at 0 under lenient pricing, leaving margin undefined."""
    sells = [make_ticket(1, "Sell", 500, 10)]
    buys = [make_ticket(2, "Buy", None, 10)]
    with pytest.raises(InputError):
        matcher.optimize("Copper", Decimal("10"), buys, sells)


@pytest.mark.parametrize("commodity,quantity", [("", "10"), ("   ", "10"), ("Copper", "0"), ("Copper", "-5")])
def test_invalid_request_rejected(matcher, scenario, commodity, quantity):
    buys, sells = scenario
    with pytest.raises(InputError):
        matcher.optimize(commodity, Decimal(quantity), buys, sells)


def test_strict_policy_rejects_unpriceable_candidate(make_ticket):
    matcher = GreedyTicketMatcher(MatchingConfigManager(pricing_policy=PricingPolicy.STRICT))
    sells = [make_ticket(1, "Sell", None, 10)]
    buys = [make_ticket(2, "Buy", 400, 10)]
    with pytest.raises(UnpriceableTicketError):
        matcher.optimize("Copper", Decimal("10"), buys, sells)


def test_rule_info_describes_algorithm(matcher):
    info = matcher.get_rule_info()
    assert info["pricing_policy"] == "lenient"
    assert "sell: price descending" in info["ranking"]
