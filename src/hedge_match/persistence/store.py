"""Read/write contracts between the engine and its persistent store."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from ..models import (
    HedgeDirection,
    HedgeExecution,
    HedgeExecutionUpdate,
    HedgeLink,
    Order,
    PhysicalLevel,
    PhysicalRef,
    PricingFixing,
    Shipment,
    Ticket,
    TicketSide,
)


class PhysicalHierarchy(ABC):
    """Lookup interface for physical references (order > shipment, ticket)."""

    @abstractmethod
    def physical_quantity(self, ref: PhysicalRef) -> Decimal:
        """Total physical quantity behind a reference.

        Raises:
            NotFoundError: If the reference does not exist
        """

    @abstractmethod
    def parent_of(self, ref: PhysicalRef) -> Optional[PhysicalRef]:
        """Parent reference (a shipment's order), or None at the top."""

    @abstractmethod
    def shipments_of(self, order_id: str) -> List[Shipment]:
        """Non-deleted shipments under an order."""

    def lineage(self, ref: PhysicalRef) -> List[PhysicalRef]:
        """The reference followed by each ancestor, nearest first."""
        chain = [ref]
        parent = self.parent_of(ref)
        while parent is not None and parent not in chain:
            chain.append(parent)
            parent = self.parent_of(parent)
        return chain


class MatchingStore(PhysicalHierarchy):
    """Persistence operations the matching and fixing engine depends on.

    ``persist_order`` and ``commit_fixing`` are each a single transaction:
    they re-validate what the engine read and either apply every write or
    none.
    """

    # -- Tickets and orders --

    @abstractmethod
    def fetch_approved_tickets(self, commodity: str, side: TicketSide) -> List[Ticket]:
        """Approved tickets for a commodity and side, in discovery order."""

    @abstractmethod
    def persist_order(
        self, order: Order, id_factory: Optional[Callable[[], str]] = None
    ) -> Order:
        """Insert an order and consume its tickets' remaining quantity.

        Args:
            order: Order proposed by a matcher
            id_factory: Produces a replacement id when ``order.id`` is taken

        Returns:
            The persisted order with its final id

        Raises:
            ConcurrencyError: A ticket no longer has the allocated quantity,
                or no free id could be found
        """

    @abstractmethod
    def get_order(self, order_id: str) -> Order:
        """Raises NotFoundError for unknown orders."""

    # -- Hedges --

    @abstractmethod
    def fetch_eligible_hedges(
        self, commodity: str, direction: HedgeDirection
    ) -> List[HedgeExecution]:
        """Open or partially closed, non-deleted executions of a direction."""

    @abstractmethod
    def get_hedges(self, hedge_ids: Iterable[str]) -> List[HedgeExecution]:
        """Executions by id, including closed ones; unknown ids are omitted."""

    def get_hedge(self, hedge_id: str) -> Optional[HedgeExecution]:
        found = self.get_hedges([hedge_id])
        return found[0] if found else None

    # -- Fixings and links --

    @abstractmethod
    def fetch_existing_fixings(self, ref: PhysicalRef) -> List[PricingFixing]:
        """Non-deleted fixings for a reference."""

    @abstractmethod
    def commit_fixing(
        self,
        fixing: PricingFixing,
        links: List[HedgeLink],
        updates: List[HedgeExecutionUpdate],
        expected_fixed_quantity: Decimal,
    ) -> PricingFixing:
        """Atomically insert a fixing with its links and apply hedge updates.

        Args:
            fixing: Fixing to insert
            links: One link per consumed hedge execution
            updates: New open quantity and status per hedge execution
            expected_fixed_quantity: Fixed sum for the reference as read
                during validation

        Returns:
            The fixing with its assigned id

        Raises:
            ConcurrencyError: The fixed sum or a hedge's open quantity
                changed since validation
        """

    @abstractmethod
    def fetch_hedge_links(self, refs: Iterable[PhysicalRef]) -> List[HedgeLink]:
        """Non-deleted links addressed to any of ``refs``."""

    @abstractmethod
    def links_for_fixing(self, fixing_id: int) -> List[HedgeLink]:
        """Links created by one fixing."""

    @abstractmethod
    def get_fixing(self, fixing_id: int) -> PricingFixing:
        """Raises NotFoundError for unknown fixings."""

    @abstractmethod
    def list_fixings(
        self, commodity: Optional[str] = None, level: Optional[PhysicalLevel] = None
    ) -> List[PricingFixing]:
        """Non-deleted fixings, newest first."""

    @abstractmethod
    def soft_delete_fixing(self, fixing_id: int) -> None:
        """Mark a fixing and its links deleted."""

    # -- Reference data --

    @abstractmethod
    def add_ticket(self, ticket: Ticket) -> Ticket:
        """Insert an externally created ticket."""

    @abstractmethod
    def add_hedge(self, hedge: HedgeExecution) -> HedgeExecution:
        """Insert an externally created hedge execution."""

    @abstractmethod
    def add_shipment(self, shipment: Shipment) -> Shipment:
        """Insert a shipment under an existing order."""
