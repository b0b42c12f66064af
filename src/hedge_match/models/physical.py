"""Physical exposure references: orders, shipments and tickets."""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class PhysicalLevel(str, Enum):
    """Level of the physical hierarchy a fixing or hedge link addresses."""

    ORDER = "Order"
    SHIPMENT = "Shipment"
    TICKET = "Ticket"


class PhysicalSide(str, Enum):
    """Side of the physical exposure being priced."""

    BUY = "buy"
    SELL = "sell"


class _RefBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        """Stable string key, e.g. ``Shipment:42``."""
        return f"{self.level}:{self.id}"  # type: ignore[attr-defined]

    def __str__(self) -> str:
        return self.key


class OrderRef(_RefBase):
    """Reference to a matched order (ids are short numeric strings)."""

    level: Literal["Order"] = "Order"
    id: str = Field(..., min_length=1)


class ShipmentRef(_RefBase):
    """Reference to a shipment (bill-of-lading order) under an order."""

    level: Literal["Shipment"] = "Shipment"
    id: int = Field(..., ge=1)


class TicketRef(_RefBase):
    """Reference to a single physical ticket."""

    level: Literal["Ticket"] = "Ticket"
    id: int = Field(..., ge=1)


PhysicalRef = Annotated[
    Union[OrderRef, ShipmentRef, TicketRef], Field(discriminator="level")
]

_ref_adapter: TypeAdapter = TypeAdapter(PhysicalRef)


def make_ref(level: Union[PhysicalLevel, str], ref_id: Any) -> Union[OrderRef, ShipmentRef, TicketRef]:
    """Build a typed physical reference from a level name and raw id.

    Args:
        level: Level name ("Order", "Shipment", "Ticket") or PhysicalLevel
        ref_id: Raw identifier; coerced to the level's id type

    Returns:
        The matching reference variant

    Raises:
        pydantic.ValidationError: If the level is unknown or the id is invalid
    """
    level_value = level.value if isinstance(level, PhysicalLevel) else str(level)
    normalized = {lvl.value.lower(): lvl.value for lvl in PhysicalLevel}
    level_value = normalized.get(level_value.lower(), level_value)
    if level_value == PhysicalLevel.ORDER.value:
        ref_id = str(ref_id)
    return _ref_adapter.validate_python({"level": level_value, "id": ref_id})


def ref_from_key(key: str) -> Union[OrderRef, ShipmentRef, TicketRef]:
    """Inverse of ``ref.key``."""
    level, _, raw_id = key.partition(":")
    return make_ref(level, raw_id)


class Shipment(BaseModel):
    """A shipment carrying part of an order's physical quantity."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    order_id: str = Field(..., min_length=1, description="Parent order")
    quantity: Decimal = Field(..., ge=0, description="Physical quantity (MT)")
    name: Optional[str] = Field(default=None, description="Display name, e.g. BL number")

    @property
    def ref(self) -> ShipmentRef:
        return ShipmentRef(id=self.id)
