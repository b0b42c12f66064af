"""Base ticket matcher: shared input checks, order construction and ids."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Union
import logging
import random

from ..config import MatchingConfigManager
from ..core.ticket_pool import TicketPool
from ..errors import InputError, LiquidityError, MarginError
from ..models import Order, OrderStatus, Ticket, TicketAllocation, TicketSide, TicketStatus
from ..pricing import PricingCalculator

logger = logging.getLogger(__name__)


class BaseTicketMatcher(ABC):
    """Base class for ticket matching algorithms.

    Subclasses decide which tickets to take and how much from each;
    this class validates the request, prices the result and builds the
    Order so every algorithm honours the same contract.
    """

    def __init__(
        self,
        config_manager: MatchingConfigManager,
        calculator: Optional[PricingCalculator] = None,
    ):
        """Initialize base matcher with configuration.

        Args:
            config_manager: Configuration manager
            calculator: Pricing calculator; built from config if None
        """
        self.config_manager = config_manager
        config = config_manager.matching_config
        self.calculator = calculator or PricingCalculator(
            policy=config.pricing_policy,
            payable_percent_threshold=config.payable_percent_threshold,
        )
        self._rng = random.Random()

        logger.debug(
            f"Initialized {self.__class__.__name__} with {self.calculator.policy.value} pricing"
        )

    def optimize(
        self,
        commodity: str,
        target_quantity: Decimal,
        buy_tickets: list[Ticket],
        sell_tickets: list[Ticket],
    ) -> Order:
        """Select buy and sell tickets covering ``target_quantity`` and build an Order.

        Args:
            commodity: Commodity type to match
            target_quantity: Quantity to cover on both sides (> 0)
            buy_tickets: Candidate buy tickets in discovery order
            sell_tickets: Candidate sell tickets in discovery order

        Returns:
            The proposed Order (not yet persisted)

        Raises:
            InputError: Missing commodity or non-positive target
            LiquidityError: Either side cannot cover the target
            MarginError: Average buy price is not below average sell price
        """
        self.validate_request(commodity, target_quantity)

        buys = self._eligible(buy_tickets, commodity, TicketSide.BUY)
        sells = self._eligible(sell_tickets, commodity, TicketSide.SELL)

        if not sells:
            raise LiquidityError("sell", target_quantity, target_quantity)
        if not buys:
            raise LiquidityError("buy", target_quantity, target_quantity)

        pool = TicketPool(buys, sells)
        allocations = self.select_allocations(pool, target_quantity)

        if not pool.record_allocations(allocations):
            raise InputError("Selected allocations exceed ticket availability")

        return self.build_order(commodity, target_quantity, allocations, pool)

    def validate_request(self, commodity: Optional[str], target_quantity: Union[Decimal, None]) -> None:
        """Reject a request before any read.

        Raises:
            InputError: Missing commodity or target quantity <= 0
        """
        if not commodity or not str(commodity).strip():
            raise InputError("Commodity type is required", field="commodity")
        if target_quantity is None:
            raise InputError("Target quantity is required", field="target_quantity")
        if target_quantity <= 0:
            raise InputError(
                "Target quantity must be greater than zero",
                field="target_quantity",
                value=target_quantity,
            )

    def _eligible(self, tickets: list[Ticket], commodity: str, side: TicketSide) -> list[Ticket]:
        """Keep approved tickets of the right side and commodity."""
        eligible = []
        for ticket in tickets:
            if ticket.side != side or ticket.status != TicketStatus.APPROVED:
                logger.debug(f"Skipping ineligible ticket {ticket.display_id}")
                continue
            if ticket.commodity.lower() != commodity.lower():
                logger.debug(f"Skipping {ticket.display_id}: commodity {ticket.commodity}")
                continue
            eligible.append(ticket)
        return eligible

    def build_order(
        self,
        commodity: str,
        target_quantity: Decimal,
        allocations: list[TicketAllocation],
        pool: TicketPool,
    ) -> Order:
        """Compute average prices and margin and assemble the Order.

        Raises:
            MarginError: Average buy price >= average sell price
            InputError: Average buy price is zero, leaving margin undefined
        """
        buys = [a for a in allocations if a.side == TicketSide.BUY]
        sells = [a for a in allocations if a.side == TicketSide.SELL]

        avg_buy = sum((a.notional for a in buys), Decimal("0")) / target_quantity
        avg_sell = sum((a.notional for a in sells), Decimal("0")) / target_quantity

        if avg_buy >= avg_sell:
            logger.warning(f"Rejected {commodity} match: buy {avg_buy} >= sell {avg_sell}")
            raise MarginError(avg_buy, avg_sell)
        if avg_buy <= 0:
            raise InputError(
                "Average buy price is zero; margin is undefined",
                field="buy_price",
                value=avg_buy,
            )

        margin = (avg_sell - avg_buy) / avg_buy

        first_buy = pool.get_ticket(buys[0].ticket_id, TicketSide.BUY)
        first_sell = pool.get_ticket(sells[0].ticket_id, TicketSide.SELL)
        config = self.config_manager.matching_config

        order = Order(
            id=self.generate_order_id(),
            commodity=commodity,
            allocated_quantity=target_quantity,
            buy_price=avg_buy,
            sell_price=avg_sell,
            margin=margin,
            status=OrderStatus(config.order_status),
            transaction_type=config.transaction_type,
            allocations=allocations,
            metal_form=first_buy.metal_form,
            isri_grade=first_buy.isri_grade,
            ship_from=first_buy.ship_from,
            ship_to=first_sell.ship_to,
            product_details=f"{first_buy.incoterms or '-'} / {first_sell.incoterms or '-'}",
        )
        logger.info(f"Proposed order {order.summary_line}")
        return order

    def generate_order_id(self) -> str:
        """Generate a short numeric order id within the configured range."""
        low, high = self.config_manager.get_order_id_range()
        return str(self._rng.randint(low, high))

    @abstractmethod
    def select_allocations(
        self, pool: TicketPool, target_quantity: Decimal
    ) -> list[TicketAllocation]:
        """Choose ticket allocations covering the target on both sides.

        Must be implemented by each specific matcher.

        Args:
            pool: Candidate pool
            target_quantity: Quantity each side must cover exactly

        Returns:
            Sell and buy allocations; each side sums to ``target_quantity``

        Raises:
            LiquidityError: A side cannot cover the target
        """
        pass

    @abstractmethod
    def get_rule_info(self) -> dict[str, Union[str, int, float, list[str]]]:
        """Get information about this matching algorithm."""
        pass
