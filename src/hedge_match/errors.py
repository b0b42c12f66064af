"""Typed failure reasons for matching and price-fixing operations.

Every operation that rejects a request raises one of these. None of them is
fatal to the process and none of them is raised after a partial write.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional


class MatchingError(Exception):
    """
    Base exception for matching engine failures.

    Provides a machine-readable reason code alongside the human message so
    callers (CLI, HTTP layer) can report the failure without parsing text.
    """

    reason: str = "matching_error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        """
        Initialize MatchingError with detailed error information.

        Args:
            message: Human-readable error message
            details: Structured context for the failure
            field: Specific input field that caused the failure
            value: The value that caused the failure
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.field = field
        self.value = value

    def __str__(self) -> str:
        """Return detailed error message."""
        parts = [self.message]

        if self.field:
            parts.append(f"Field: {self.field}")

        if self.value is not None:
            parts.append(f"Value: {self.value}")

        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the failure for API responses."""
        return {
            "reason": self.reason,
            "detail": str(self),
            "retryable": self.retryable,
            "details": _jsonable(self.details),
        }


class InputError(MatchingError):
    """Missing or invalid required input, rejected before any read."""

    reason = "input_error"


class UnpriceableTicketError(InputError):
    """A ticket lacks the inputs its pricing mode needs (strict pricing only)."""

    reason = "unpriceable_ticket"

    def __init__(self, ticket_id: Any, missing: str):
        super().__init__(
            f"Ticket {ticket_id} cannot be priced: {missing}",
            details={"ticket_id": ticket_id, "missing": missing},
        )
        self.ticket_id = ticket_id
        self.missing = missing


class NotFoundError(MatchingError):
    """Referenced order, shipment, ticket or hedge does not exist."""

    reason = "not_found"


class LiquidityError(MatchingError):
    """Not enough ticket or hedge capacity to cover the requested quantity."""

    reason = "insufficient_liquidity"

    def __init__(self, side: str, requested: Decimal, shortfall: Decimal):
        super().__init__(
            f"Insufficient {side} liquidity: short {shortfall} of {requested}",
            details={"side": side, "requested": requested, "shortfall": shortfall},
        )
        self.side = side
        self.requested = requested
        self.shortfall = shortfall


class MarginError(MatchingError):
    """Average buy price is not below average sell price."""

    reason = "non_positive_margin"

    def __init__(self, buy_price: Decimal, sell_price: Decimal):
        super().__init__(
            f"Non-positive margin: buy {buy_price} >= sell {sell_price}",
            details={"buy_price": buy_price, "sell_price": sell_price},
        )
        self.buy_price = buy_price
        self.sell_price = sell_price


@dataclass(frozen=True)
class CapacityViolation:
    """One allocation item that exceeds a capacity ceiling."""

    item: str
    kind: str  # "physical" or "hedge"
    requested: Decimal
    limit: Decimal

    def describe(self) -> str:
        return f"{self.item}: requested {self.requested} exceeds {self.kind} capacity {self.limit}"


class CapacityError(MatchingError):
    """Requested allocations exceed hedge open quantity or unfixed physical quantity."""

    reason = "capacity_exceeded"

    def __init__(self, violations: List[CapacityViolation]):
        super().__init__(
            "Allocation exceeds available capacity",
            details={
                "violations": [
                    {
                        "item": v.item,
                        "kind": v.kind,
                        "requested": v.requested,
                        "limit": v.limit,
                    }
                    for v in violations
                ]
            },
        )
        self.violations = violations

    def __str__(self) -> str:
        base_msg = super().__str__()
        if not self.violations:
            return base_msg
        return " | ".join([base_msg] + [v.describe() for v in self.violations])


class ConcurrencyError(MatchingError):
    """A resource changed between the validation read and the commit."""

    reason = "concurrent_modification"
    retryable = True


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
