"""Candidate ticket pool for a single optimization run."""

from decimal import Decimal
from typing import Any
import logging

from ..models import Ticket, TicketAllocation, TicketSide

logger = logging.getLogger(__name__)


class TicketPool:
    """Tracks available quantity per candidate ticket during one optimization.

    Tickets keep the order in which they were discovered so equal-priced
    candidates are ranked deterministically. The pool never mutates the
    Ticket records themselves; persisting consumption is the store's job.
    """

    def __init__(self, buy_tickets: list[Ticket], sell_tickets: list[Ticket]):
        """Initialize the pool with candidate lists in discovery order.

        Fully consumed tickets are left out of the pool.

        Args:
            buy_tickets: Approved buy tickets for the commodity
            sell_tickets: Approved sell tickets for the commodity
        """
        self._original_buy_count = len(buy_tickets)
        self._original_sell_count = len(sell_tickets)

        self._pools: dict[TicketSide, dict[int, Ticket]] = {
            TicketSide.BUY: {t.id: t for t in buy_tickets if t.is_available},
            TicketSide.SELL: {t.id: t for t in sell_tickets if t.is_available},
        }
        self._available: dict[TicketSide, dict[int, Decimal]] = {
            side: {tid: t.remaining_quantity for tid, t in pool.items()}
            for side, pool in self._pools.items()
        }

        # Allocation history for the run: (ticket_id, side, quantity)
        self._allocation_history: list[tuple[int, str, Decimal]] = []

        logger.info(
            f"Initialized ticket pool with {len(buy_tickets)} buy and {len(sell_tickets)} sell tickets"
        )

    def _side_pool(self, side: TicketSide) -> dict[int, Ticket]:
        if side not in self._pools:
            raise ValueError(f"Unknown ticket side: {side}")
        return self._pools[side]

    def get_available_tickets(self, side: TicketSide) -> list[Ticket]:
        """Get tickets with quantity left, in discovery order.

        Args:
            side: Ticket side (BUY or SELL)

        Returns:
            List of tickets whose available quantity is above zero
        """
        pool = self._side_pool(side)
        available = self._available[side]
        return [t for tid, t in pool.items() if available[tid] > 0]

    def available_quantity(self, ticket_id: int, side: TicketSide) -> Decimal:
        """Quantity still available on a ticket (0 for unknown tickets)."""
        return self._available[side].get(ticket_id, Decimal("0"))

    def total_available(self, side: TicketSide) -> Decimal:
        """Sum of available quantity on one side of the pool."""
        return sum(self._available[side].values(), Decimal("0"))

    def get_ticket(self, ticket_id: int, side: TicketSide) -> Ticket:
        return self._side_pool(side)[ticket_id]

    def record_allocations(self, allocations: list[TicketAllocation]) -> bool:
        """Atomically take quantity from every ticket in ``allocations``.

        All tickets are verified before any quantity is taken, so a failed
        call leaves the pool untouched.

        Args:
            allocations: Ticket allocations to record

        Returns:
            True if every allocation fit, False otherwise
        """
        requested: dict[tuple[TicketSide, int], Decimal] = {}
        for alloc in allocations:
            key = (alloc.side, alloc.ticket_id)
            requested[key] = requested.get(key, Decimal("0")) + alloc.quantity

        for (side, ticket_id), quantity in requested.items():
            if self.available_quantity(ticket_id, side) < quantity:
                logger.warning(
                    f"Ticket {ticket_id} ({side.value}) has "
                    f"{self.available_quantity(ticket_id, side)} available, {quantity} requested"
                )
                return False

        for (side, ticket_id), quantity in requested.items():
            self._available[side][ticket_id] -= quantity
            self._allocation_history.append((ticket_id, side.value, quantity))

        logger.debug(f"Recorded {len(allocations)} ticket allocations")
        return True

    def get_statistics(self) -> dict[str, Any]:
        """Get pool statistics.

        Returns:
            Dictionary with candidate counts and available quantities
        """
        return {
            "original_buy_count": self._original_buy_count,
            "original_sell_count": self._original_sell_count,
            "available_buy_count": len(self.get_available_tickets(TicketSide.BUY)),
            "available_sell_count": len(self.get_available_tickets(TicketSide.SELL)),
            "available_buy_quantity": self.total_available(TicketSide.BUY),
            "available_sell_quantity": self.total_available(TicketSide.SELL),
            "allocation_history": self._allocation_history.copy(),
        }
