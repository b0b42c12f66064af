"""Pydantic models for API request and response."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import (
    EligibleHedge,
    FixingDetail,
    HedgeLink,
    NetExposure,
    Order,
    PhysicalLevel,
    PhysicalSide,
    PricingFixing,
)


class OptimizeRequest(BaseModel):
    """Request model for the ticket matching optimizer."""

    commodity: str = Field(..., description="Commodity type, e.g. Copper")
    quantity: Decimal = Field(..., description="Target quantity (MT) for each side")
    dryRun: bool = Field(default=False, description="Return the proposal without saving it")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{"commodity": "Copper", "quantity": 40, "dryRun": False}]
        }
    )


class AllocationItem(BaseModel):
    """Quantity to take from one hedge execution."""

    hedgeExecutionId: str
    quantity: Decimal


class FixingCreateRequest(BaseModel):
    """Request model for fixing a physical quantity against hedges."""

    level: PhysicalLevel
    refId: str = Field(..., description="Order id, shipment id or ticket id")
    side: PhysicalSide
    commodity: str
    allocations: list[AllocationItem] = Field(default_factory=list)
    fixingPrice: Optional[Decimal] = None
    fixedAt: Optional[date] = None
    currency: Optional[str] = None
    notes: Optional[str] = None
    showAllHedges: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "level": "Shipment",
                    "refId": "42",
                    "side": "sell",
                    "commodity": "Copper",
                    "allocations": [{"hedgeExecutionId": "HX-1", "quantity": 60}],
                    "fixingPrice": 9050,
                    "fixedAt": "2024-05-02",
                }
            ]
        }
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    reason: str
    detail: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


class TicketLegResponse(BaseModel):
    ticketId: int
    side: str
    quantity: float
    unitPrice: float


class OrderResponse(BaseModel):
    """Order created (or proposed) by the optimizer."""

    id: str
    commodity: str
    allocatedQuantity: float
    buyPrice: float
    sellPrice: float
    margin: float
    status: str
    transactionType: str
    buyTicketIds: list[int]
    sellTicketIds: list[int]
    productDetails: Optional[str] = None
    metalForm: Optional[str] = None
    isriGrade: Optional[str] = None
    shipFrom: Optional[str] = None
    shipTo: Optional[str] = None
    createdAt: datetime
    persisted: bool
    allocations: list[TicketLegResponse]

    @classmethod
    def from_order(cls, order: Order, persisted: bool = True) -> "OrderResponse":
        return cls(
            id=order.id,
            commodity=order.commodity,
            allocatedQuantity=float(order.allocated_quantity),
            buyPrice=float(order.buy_price),
            sellPrice=float(order.sell_price),
            margin=float(order.margin),
            status=order.status.value,
            transactionType=order.transaction_type,
            buyTicketIds=order.buy_ticket_ids,
            sellTicketIds=order.sell_ticket_ids,
            productDetails=order.product_details,
            metalForm=order.metal_form,
            isriGrade=order.isri_grade,
            shipFrom=order.ship_from,
            shipTo=order.ship_to,
            createdAt=order.created_at,
            persisted=persisted,
            allocations=[
                TicketLegResponse(
                    ticketId=a.ticket_id,
                    side=a.side.value,
                    quantity=float(a.quantity),
                    unitPrice=float(a.unit_price),
                )
                for a in order.allocations
            ],
        )


class HedgeResponse(BaseModel):
    """Eligible hedge execution."""

    id: str
    direction: str
    commodity: str
    quantity: float
    openQuantity: float
    executedPrice: float
    status: str
    broker: Optional[str] = None
    executedAt: Optional[datetime] = None
    sourceRef: Optional[str] = None

    @classmethod
    def from_eligible(cls, hedge: EligibleHedge) -> "HedgeResponse":
        execution = hedge.execution
        return cls(
            id=execution.id,
            direction=execution.direction.value,
            commodity=execution.commodity,
            quantity=float(execution.quantity),
            openQuantity=float(hedge.open_quantity),
            executedPrice=float(execution.executed_price),
            status=execution.status.value,
            broker=execution.broker,
            executedAt=execution.executed_at,
            sourceRef=execution.source_ref.key if execution.source_ref else None,
        )


class HedgeLinkResponse(BaseModel):
    id: Optional[int]
    hedgeExecutionId: str
    allocatedQuantity: float
    side: str
    direction: str
    execPrice: float
    fixingPrice: float

    @classmethod
    def from_link(cls, link: HedgeLink) -> "HedgeLinkResponse":
        return cls(
            id=link.id,
            hedgeExecutionId=link.hedge_execution_id,
            allocatedQuantity=float(link.allocated_quantity),
            side=link.side.value,
            direction=link.direction.value,
            execPrice=float(link.exec_price),
            fixingPrice=float(link.fixing_price),
        )


class FixingResponse(BaseModel):
    """Price fixing with its hedge links."""

    id: Optional[int]
    level: str
    refId: str
    commodity: str
    quantity: float
    finalPrice: float
    currency: str
    fixedAt: date
    notes: Optional[str] = None
    createdAt: datetime
    deleted: bool = False
    links: list[HedgeLinkResponse] = Field(default_factory=list)

    @classmethod
    def from_fixing(cls, fixing: PricingFixing, links: Optional[list[HedgeLink]] = None) -> "FixingResponse":
        return cls(
            id=fixing.id,
            level=fixing.ref.level,
            refId=str(fixing.ref.id),
            commodity=fixing.commodity,
            quantity=float(fixing.quantity),
            finalPrice=float(fixing.final_price),
            currency=fixing.currency,
            fixedAt=fixing.fixed_at,
            notes=fixing.notes,
            createdAt=fixing.created_at,
            deleted=fixing.is_deleted,
            links=[HedgeLinkResponse.from_link(l) for l in links or []],
        )

    @classmethod
    def from_detail(cls, detail: FixingDetail) -> "FixingResponse":
        return cls.from_fixing(detail.fixing, detail.links)


class ExposureResponse(BaseModel):
    """Net hedge exposure of an order."""

    orderId: str
    net: float
    label: str
    display: str
    contributions: list[dict[str, Any]]

    @classmethod
    def from_exposure(cls, exposure: NetExposure) -> "ExposureResponse":
        return cls(
            orderId=exposure.order_id,
            net=float(exposure.net),
            label=exposure.label.value,
            display=exposure.display,
            contributions=[
                {
                    "hedgeExecutionId": c.hedge_execution_id,
                    "direction": c.direction,
                    "openQuantity": float(c.open_quantity),
                    "signedQuantity": float(c.signed_quantity),
                    "linkLevel": c.link_level,
                    "linkId": c.link_id,
                }
                for c in exposure.contributions
            ],
        )


class AvailableQuantityResponse(BaseModel):
    level: str
    refId: str
    physicalQuantity: float
    fixedQuantity: float
    availableQuantity: float


class HasOpenHedgeResponse(BaseModel):
    level: str
    refId: str
    hasOpenHedge: bool
