"""Ticket data model for physical buy/sell offers."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TicketSide(str, Enum):
    """Whether the ticket offers to buy or to sell."""

    BUY = "Buy"
    SELL = "Sell"


class PricingType(str, Enum):
    """How a ticket's unit price is derived."""

    FIXED = "Fixed"
    FORMULA = "Formula"  # reference price x payable percent
    INDEX = "Index"  # reference price + premium/discount


class TicketStatus(str, Enum):
    """Approval status of a ticket. Only approved tickets are matchable."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CLOSED = "Closed"


class Ticket(BaseModel):
    """A standing offer to buy or sell a quantity of a commodity.

    Price is never stored on the ticket; it is derived from the pricing mode
    inputs by the pricing calculator.
    """

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    # Core identification
    id: int = Field(..., ge=1, description="Ticket identifier")
    side: TicketSide = Field(..., description="Buy or Sell")
    commodity: str = Field(..., min_length=1, description="Commodity type (e.g. Copper)")
    status: TicketStatus = Field(default=TicketStatus.APPROVED)

    # Quantities (MT)
    quantity: Decimal = Field(..., ge=0, description="Total ticket quantity")
    remaining_quantity: Decimal = Field(
        ..., ge=0, description="Quantity not yet allocated to an order"
    )

    # Pricing mode inputs
    pricing_type: PricingType = Field(default=PricingType.FIXED)
    signed_price: Optional[Decimal] = Field(default=None, description="Fixed price")
    reference_price: Optional[Decimal] = Field(
        default=None, description="LME reference price for Formula/Index"
    )
    payable_percent: Optional[Decimal] = Field(
        default=None, description="Payable fraction (0-1.5) or percentage (>1.5)"
    )
    premium_discount: Optional[Decimal] = Field(
        default=None, description="Signed premium/discount for Index pricing"
    )

    # Metadata carried into orders
    incoterms: Optional[str] = Field(default=None)
    ship_from: Optional[str] = Field(default=None)
    ship_to: Optional[str] = Field(default=None)
    metal_form: Optional[str] = Field(default=None)
    isri_grade: Optional[str] = Field(default=None)
    client_name: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def _check_remaining(self) -> "Ticket":
        if self.remaining_quantity > self.quantity:
            raise ValueError(
                f"remaining_quantity {self.remaining_quantity} exceeds quantity {self.quantity}"
            )
        return self

    @property
    def is_available(self) -> bool:
        """True when the ticket still has quantity to allocate."""
        return self.remaining_quantity > 0

    @property
    def display_id(self) -> str:
        return f"T{self.id}"

    def __str__(self) -> str:
        return (
            f"Ticket({self.display_id}: {self.side.value} {self.commodity} "
            f"{self.remaining_quantity}/{self.quantity} {self.pricing_type.value})"
        )
