"""Price fixing records and the hedge links they consume."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .hedge import HedgeDirection
from .physical import PhysicalLevel, PhysicalRef, PhysicalSide


class PricingFixing(BaseModel):
    """Immutable record that a physical quantity was priced on a given date.

    Only ever soft-deleted; ``deleted_at`` rows are excluded from every
    fixed-quantity sum.
    """

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
    )

    id: Optional[int] = Field(default=None, description="Assigned on commit")
    ref: PhysicalRef
    commodity: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0, description="Fixed quantity (MT)")
    final_price: Decimal = Field(..., gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    fixed_at: date
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    deleted_at: Optional[datetime] = None

    @property
    def level(self) -> PhysicalLevel:
        return PhysicalLevel(self.ref.level)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def summary_line(self) -> str:
        return (
            f"Fixing #{self.id}: {self.ref.key} {self.commodity} "
            f"{self.quantity} MT @ {self.final_price} {self.currency} on {self.fixed_at}"
        )


class HedgeLink(BaseModel):
    """Join record between a fixing and a hedge execution it consumed."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    fixing_id: Optional[int] = None
    hedge_execution_id: str
    ref: PhysicalRef
    allocated_quantity: Decimal = Field(..., gt=0)
    side: PhysicalSide
    direction: HedgeDirection
    exec_price: Decimal = Field(..., description="Hedge execution price at allocation time")
    fixing_price: Decimal
    commodity: str
    created_at: datetime = Field(default_factory=datetime.now)
    deleted_at: Optional[datetime] = None


class AllocationRequest(BaseModel):
    """Caller-chosen quantity to take from one hedge execution."""

    hedge_execution_id: str
    quantity: Decimal


class FixingRequest(BaseModel):
    """Everything the allocation engine needs to fix a physical quantity.

    Quantities and price are unconstrained here; the allocation engine
    validates them and raises InputError.
    """

    ref: PhysicalRef
    side: PhysicalSide
    commodity: str
    allocations: List[AllocationRequest] = Field(default_factory=list)
    fixing_price: Optional[Decimal] = None
    fixed_at: date = Field(default_factory=date.today)
    currency: str = "USD"
    notes: Optional[str] = None
    show_all_hedges: bool = Field(
        default=False, description="Allow hedges not scoped to this reference"
    )

    @property
    def total_quantity(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), Decimal("0"))


class FixingDetail(BaseModel):
    """A fixing with the hedge links it created."""

    fixing: PricingFixing
    links: List[HedgeLink] = Field(default_factory=list)
