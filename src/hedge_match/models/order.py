"""Order data model: a matched buy/sell ticket combination."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .ticket import TicketSide


class OrderStatus(str, Enum):
    """Lifecycle status of an order. The optimizer only creates Allocated orders."""

    ALLOCATED = "Allocated"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class TicketAllocation(BaseModel):
    """Quantity taken from a single ticket at its computed unit price."""

    model_config = ConfigDict(frozen=True)

    ticket_id: int = Field(..., ge=1)
    side: TicketSide
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., description="Price from the pricing calculator")

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.unit_price


class Order(BaseModel):
    """Result of matching buy tickets against sell tickets for a fixed quantity.

    Immutable once created; margin is (sell_price - buy_price) / buy_price.
    """

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
    )

    id: str = Field(..., min_length=1, description="Short numeric order identifier")
    commodity: str = Field(..., min_length=1)
    allocated_quantity: Decimal = Field(..., gt=0)
    buy_price: Decimal = Field(..., description="Quantity-weighted average buy price")
    sell_price: Decimal = Field(..., description="Quantity-weighted average sell price")
    margin: Decimal = Field(..., description="(sell - buy) / buy")
    status: OrderStatus = Field(default=OrderStatus.ALLOCATED)
    transaction_type: str = Field(default="B2B")

    allocations: List[TicketAllocation] = Field(default_factory=list)

    # Metadata copied from the first selected tickets
    metal_form: Optional[str] = None
    isri_grade: Optional[str] = None
    ship_from: Optional[str] = None
    ship_to: Optional[str] = None
    product_details: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def buy_allocations(self) -> List[TicketAllocation]:
        return [a for a in self.allocations if a.side == TicketSide.BUY]

    @property
    def sell_allocations(self) -> List[TicketAllocation]:
        return [a for a in self.allocations if a.side == TicketSide.SELL]

    @property
    def buy_ticket_ids(self) -> List[int]:
        return [a.ticket_id for a in self.buy_allocations]

    @property
    def sell_ticket_ids(self) -> List[int]:
        return [a.ticket_id for a in self.sell_allocations]

    @property
    def summary_line(self) -> str:
        """One-line summary of this order for display."""
        return (
            f"Order #{self.id}: {self.commodity} {self.allocated_quantity} MT | "
            f"Buy {self.buy_price:.2f} ({','.join(map(str, self.buy_ticket_ids))}) | "
            f"Sell {self.sell_price:.2f} ({','.join(map(str, self.sell_ticket_ids))}) | "
            f"Margin {self.margin:.4f}"
        )

    def __str__(self) -> str:
        return f"Order({self.id}: {self.commodity} {self.allocated_quantity} margin={self.margin:.4f})"
