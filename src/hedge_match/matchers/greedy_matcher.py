"""Greedy two-sided ticket matcher (default algorithm)."""

from decimal import Decimal
from typing import Dict, List, Optional
import logging

from ..config import MatchingConfigManager
from ..core.ticket_pool import TicketPool
from ..errors import LiquidityError
from ..models import Ticket, TicketAllocation, TicketSide
from ..pricing import PricingCalculator
from .base_matcher import BaseTicketMatcher

logger = logging.getLogger(__name__)


class GreedyTicketMatcher(BaseTicketMatcher):
    """Greedy margin-maximizing matcher.

    Sell tickets are taken highest price first and buy tickets lowest price
    first, each side independently, until the target quantity is covered.
    The last ticket taken on a side may be split. Equal prices keep pool
    discovery order. Not guaranteed to find the global optimum.
    """

    def __init__(self, config_manager: MatchingConfigManager, calculator: Optional[PricingCalculator] = None):
        super().__init__(config_manager, calculator)
        logger.info("Initialized GreedyTicketMatcher")

    def select_allocations(
        self, pool: TicketPool, target_quantity: Decimal
    ) -> List[TicketAllocation]:
        """Fill the sell side, then the buy side, from ranked candidates.

        Args:
            pool: Candidate pool
            target_quantity: Quantity each side must cover

        Returns:
            Sell allocations followed by buy allocations

        Raises:
            LiquidityError: A side runs out before reaching the target
        """
        sells = self._fill_side(pool, TicketSide.SELL, target_quantity)
        buys = self._fill_side(pool, TicketSide.BUY, target_quantity)
        return sells + buys

    def _fill_side(
        self, pool: TicketPool, side: TicketSide, target_quantity: Decimal
    ) -> List[TicketAllocation]:
        candidates = pool.get_available_tickets(side)
        prices = self._price_candidates(candidates)

        # sorted() is stable: ties keep discovery order
        descending = side == TicketSide.SELL
        ranked = sorted(candidates, key=lambda t: prices[t.id], reverse=descending)

        allocations: List[TicketAllocation] = []
        remaining = target_quantity
        for ticket in ranked:
            if remaining <= 0:
                break
            available = pool.available_quantity(ticket.id, side)
            if available <= 0:
                continue
            take = min(remaining, available)
            allocations.append(
                TicketAllocation(
                    ticket_id=ticket.id,
                    side=side,
                    quantity=take,
                    unit_price=prices[ticket.id],
                )
            )
            remaining -= take
            logger.debug(
                f"Took {take} from {ticket.display_id} @ {prices[ticket.id]} ({side.value})"
            )

        if remaining > 0:
            logger.warning(
                f"Insufficient {side.value.lower()} liquidity: short {remaining} of {target_quantity}"
            )
            raise LiquidityError(side.value.lower(), target_quantity, remaining)

        return allocations

    def _price_candidates(self, candidates: List[Ticket]) -> Dict[int, Decimal]:
        return {t.id: self.calculator.unit_price(t) for t in candidates}

    def get_rule_info(self) -> Dict:
        """Get information about the greedy matching algorithm.

        Returns:
            Dictionary with algorithm metadata
        """
        return {
            "name": "Greedy Two-Sided Match",
            "description": "Highest-priced sells and lowest-priced buys until the target is covered",
            "pricing_policy": self.calculator.policy.value,
            "ranking": [
                "sell: price descending",
                "buy: price ascending",
                "ties: discovery order",
            ],
            "notes": "Last ticket on each side may be partially allocated",
        }
