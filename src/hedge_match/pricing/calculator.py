"""Unit price calculation for tickets by pricing mode."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional
import logging

from ..errors import UnpriceableTicketError
from ..models.ticket import PricingType, Ticket

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class PricingPolicy(str, Enum):
    """What to do with a ticket whose pricing inputs are incomplete."""

    LENIENT = "lenient"  # price it at 0
    STRICT = "strict"  # reject it with UnpriceableTicketError


@dataclass(frozen=True)
class PriceQuote:
    """Outcome of pricing a ticket; ``reason`` explains an unpriceable result."""

    price: Decimal
    priceable: bool
    reason: Optional[str] = None


class PricingCalculator:
    """Derives a ticket's unit price from its pricing mode inputs.

    - Fixed: the stored signed price
    - Formula: reference price x payable fraction
    - Index: reference price + premium/discount
    """

    def __init__(
        self,
        policy: PricingPolicy = PricingPolicy.LENIENT,
        payable_percent_threshold: Decimal = Decimal("1.5"),
    ):
        """Initialize the calculator.

        Args:
            policy: Lenient (unpriceable -> 0) or strict (unpriceable -> error)
            payable_percent_threshold: Payable values above this are read as
                percentages and divided by 100
        """
        self.policy = policy
        self.payable_percent_threshold = payable_percent_threshold

    def normalize_payable(self, payable_percent: Decimal) -> Decimal:
        """Return the payable value as a fraction.

        Values above the threshold (1.5) are already percentages.
        """
        if payable_percent > self.payable_percent_threshold:
            return payable_percent / Decimal("100")
        return payable_percent

    def quote(self, ticket: Ticket) -> PriceQuote:
        """Price a ticket without applying the policy.

        Args:
            ticket: Ticket with pricing mode and mode-specific inputs

        Returns:
            PriceQuote; ``priceable`` is False when a required input is
            missing or the result is negative
        """
        if ticket.pricing_type == PricingType.FIXED:
            if ticket.signed_price is None:
                return PriceQuote(ZERO, False, "signed_price")
            price = ticket.signed_price
        elif ticket.pricing_type == PricingType.FORMULA:
            if ticket.reference_price is None:
                return PriceQuote(ZERO, False, "reference_price")
            if ticket.payable_percent is None:
                return PriceQuote(ZERO, False, "payable_percent")
            price = ticket.reference_price * self.normalize_payable(ticket.payable_percent)
        elif ticket.pricing_type == PricingType.INDEX:
            if ticket.reference_price is None:
                return PriceQuote(ZERO, False, "reference_price")
            if ticket.premium_discount is None:
                return PriceQuote(ZERO, False, "premium_discount")
            price = ticket.reference_price + ticket.premium_discount
        else:
            return PriceQuote(ZERO, False, f"pricing_type {ticket.pricing_type}")

        if price < 0:
            return PriceQuote(ZERO, False, f"negative price {price}")
        return PriceQuote(price, True)

    def unit_price(self, ticket: Ticket) -> Decimal:
        """Price a ticket, applying the configured policy to unpriceable tickets.

        Raises:
            UnpriceableTicketError: Strict policy and incomplete inputs
        """
        quote = self.quote(ticket)
        if quote.priceable:
            return quote.price

        if self.policy == PricingPolicy.STRICT:
            raise UnpriceableTicketError(ticket.id, quote.reason or "unknown")

        logger.debug(
            f"Ticket {ticket.display_id} unpriceable ({quote.reason}); pricing at 0"
        )
        return ZERO
