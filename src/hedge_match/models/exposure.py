"""Net exposure result model."""

from decimal import Decimal
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ExposureLabel(str, Enum):
    FLAT = "Flat"
    LONG = "Long"
    SHORT = "Short"


class ExposureContribution(BaseModel):
    """One distinct hedge execution's signed contribution to the net."""

    model_config = ConfigDict(frozen=True)

    hedge_execution_id: str
    direction: str
    open_quantity: Decimal
    signed_quantity: Decimal
    link_level: str
    link_id: str


class NetExposure(BaseModel):
    """Net long/short position across an order and its shipments."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    net: Decimal = Field(..., description="Signed net quantity; 0 when flat")
    label: ExposureLabel
    contributions: List[ExposureContribution] = Field(default_factory=list)

    @property
    def magnitude(self) -> Decimal:
        return abs(self.net)

    @property
    def display(self) -> str:
        """Human label, e.g. ``Long 12.50 MT``."""
        if self.label == ExposureLabel.FLAT:
            return "Flat"
        return f"{self.label.value} {self.magnitude:.2f} MT"
