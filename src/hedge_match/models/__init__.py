"""Data models for ticket matching and hedge price fixing."""

from .ticket import Ticket, TicketSide, PricingType, TicketStatus
from .order import Order, OrderStatus, TicketAllocation
from .physical import (
    PhysicalLevel,
    PhysicalSide,
    PhysicalRef,
    OrderRef,
    ShipmentRef,
    TicketRef,
    Shipment,
    make_ref,
    ref_from_key,
)
from .hedge import (
    HedgeExecution,
    HedgeDirection,
    HedgeStatus,
    HedgeExecutionUpdate,
    EligibleHedge,
    OPEN_STATUSES,
    derive_hedge_status,
    parse_hedge_status,
)
from .fixing import (
    PricingFixing,
    HedgeLink,
    AllocationRequest,
    FixingRequest,
    FixingDetail,
)
from .exposure import NetExposure, ExposureLabel, ExposureContribution

__all__ = [
    "Ticket",
    "TicketSide",
    "PricingType",
    "TicketStatus",
    "Order",
    "OrderStatus",
    "TicketAllocation",
    "PhysicalLevel",
    "PhysicalSide",
    "PhysicalRef",
    "OrderRef",
    "ShipmentRef",
    "TicketRef",
    "Shipment",
    "make_ref",
    "ref_from_key",
    "HedgeExecution",
    "HedgeDirection",
    "HedgeStatus",
    "HedgeExecutionUpdate",
    "EligibleHedge",
    "OPEN_STATUSES",
    "derive_hedge_status",
    "parse_hedge_status",
    "PricingFixing",
    "HedgeLink",
    "AllocationRequest",
    "FixingRequest",
    "FixingDetail",
    "NetExposure",
    "ExposureLabel",
    "ExposureContribution",
]
