"""Core engine components: ticket pool, hedge eligibility, allocation and exposure."""

from .ticket_pool import TicketPool
from .hedge_resolver import HedgeEligibilityResolver
from .allocation_engine import AllocationEngine
from .exposure import ExposureAggregator, aggregate_exposure
from .record_factory import HedgeFactory, ShipmentFactory, TicketFactory

__all__ = [
    "TicketPool",
    "HedgeEligibilityResolver",
    "AllocationEngine",
    "ExposureAggregator",
    "aggregate_exposure",
    "HedgeFactory",
    "ShipmentFactory",
    "TicketFactory",
]
