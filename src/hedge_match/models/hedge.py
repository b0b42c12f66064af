"""Hedge execution data model and status derivation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .physical import PhysicalRef


class HedgeDirection(str, Enum):
    """Direction of the financial hedge trade."""

    BUY = "Buy"
    SELL = "Sell"

    @property
    def sign(self) -> int:
        """+1 for long (Buy), -1 for short (Sell)."""
        return 1 if self is HedgeDirection.BUY else -1


class HedgeStatus(str, Enum):
    """Allocation state of a hedge execution, derived from its open quantity."""

    OPEN = "OPEN"
    PARTIALLY_CLOSED = "PARTIALLY_CLOSED"
    CLOSED = "CLOSED"


OPEN_STATUSES = (HedgeStatus.OPEN, HedgeStatus.PARTIALLY_CLOSED)


def derive_hedge_status(open_quantity: Decimal, trade_quantity: Decimal) -> HedgeStatus:
    """Status as a pure function of open vs. trade quantity.

    Args:
        open_quantity: Quantity not yet consumed by any fixing
        trade_quantity: Original trade quantity

    Returns:
        OPEN when nothing is consumed, CLOSED when nothing is left,
        PARTIALLY_CLOSED in between
    """
    if open_quantity <= 0:
        return HedgeStatus.CLOSED
    if open_quantity >= trade_quantity:
        return HedgeStatus.OPEN
    return HedgeStatus.PARTIALLY_CLOSED


def parse_hedge_status(value: str) -> HedgeStatus:
    """Look up a status by name, ignoring case, spaces and underscores.

    Accepts the export spellings ('PartiallyClosed', 'partially closed')
    as well as the enum value itself.
    """
    key = value.replace("_", "").replace(" ", "").upper()
    for member in HedgeStatus:
        if member.value.replace("_", "") == key:
            return member
    raise ValueError(f"Unknown hedge status: {value!r}")


class HedgeExecution(BaseModel):
    """A financial trade taken to hedge physical exposure."""

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    id: str = Field(..., min_length=1, description="Hedge execution identifier")
    direction: HedgeDirection
    commodity: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0, description="Original trade quantity (MT)")
    open_quantity: Decimal = Field(..., ge=0, description="Unallocated quantity (MT)")
    executed_price: Decimal = Field(..., description="Execution price")
    broker: Optional[str] = None
    executed_at: Optional[datetime] = None
    status: HedgeStatus = Field(default=HedgeStatus.OPEN, description="Derived from open quantity when omitted")
    closed_price: Optional[Decimal] = None
    closed_at: Optional[datetime] = None

    # Physical reference the hedge was requested for (hedge request scope)
    source_ref: Optional[PhysicalRef] = None
    deleted_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _default_status(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("status") is None:
            try:
                open_quantity = Decimal(str(data["open_quantity"]))
                quantity = Decimal(str(data["quantity"]))
            except (KeyError, ArithmeticError):
                return data
            data = {**data, "status": derive_hedge_status(open_quantity, quantity)}
        return data

    @model_validator(mode="after")
    def _check_open_quantity(self) -> "HedgeExecution":
        if self.open_quantity > self.quantity:
            raise ValueError(
                f"open_quantity {self.open_quantity} exceeds trade quantity {self.quantity}"
            )
        expected = derive_hedge_status(self.open_quantity, self.quantity)
        if self.status != expected:
            raise ValueError(
                f"status {self.status.value} does not match open quantity "
                f"{self.open_quantity}/{self.quantity} (expected {expected.value})"
            )
        return self

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES and self.deleted_at is None

    @property
    def allocated_quantity(self) -> Decimal:
        return self.quantity - self.open_quantity

    def __str__(self) -> str:
        return (
            f"HedgeExecution({self.id}: {self.direction.value} {self.commodity} "
            f"{self.open_quantity}/{self.quantity} @ {self.executed_price} {self.status.value})"
        )


class EligibleHedge(BaseModel):
    """A hedge execution offered as a fixing counterparty, with its open quantity."""

    model_config = ConfigDict(frozen=True)

    execution: HedgeExecution
    open_quantity: Decimal

    @property
    def id(self) -> str:
        return self.execution.id


class HedgeExecutionUpdate(BaseModel):
    """State transition applied to one hedge execution by a fixing commit.

    ``expected_open_quantity`` is the value read during validation; the store
    refuses the update if the persisted value has moved since.
    """

    model_config = ConfigDict(frozen=True)

    hedge_execution_id: str
    expected_open_quantity: Decimal
    open_quantity: Decimal = Field(..., ge=0)
    status: HedgeStatus
    closed_price: Optional[Decimal] = None
    closed_at: Optional[datetime] = None
