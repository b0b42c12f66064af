"""Service layer for the matching API."""

import asyncio
import logging
import threading
from datetime import date
from typing import List, Optional

from ..main import MatchingEngine
from ..models import (
    AllocationRequest,
    FixingRequest,
    PhysicalLevel,
    PhysicalSide,
    make_ref,
)
from .models import (
    AvailableQuantityResponse,
    ExposureResponse,
    FixingCreateRequest,
    FixingResponse,
    HasOpenHedgeResponse,
    HedgeResponse,
    OptimizeRequest,
    OrderResponse,
)

logger = logging.getLogger(__name__)


class MatchingService:
    """Runs engine operations off the event loop.

    The engine is created on first use (database from HEDGE_MATCH_DB) unless
    one is passed in.
    """

    def __init__(self, engine: Optional[MatchingEngine] = None) -> None:
        self._engine = engine
        self._lock = threading.Lock()

    @property
    def engine(self) -> MatchingEngine:
        with self._lock:
            if self._engine is None:
                self._engine = MatchingEngine()
            return self._engine

    async def optimize(self, request: OptimizeRequest) -> OrderResponse:
        return await asyncio.to_thread(self._optimize_sync, request)

    def _optimize_sync(self, request: OptimizeRequest) -> OrderResponse:
        order = self.engine.optimize_and_create_order(
            request.commodity, request.quantity, dry_run=request.dryRun
        )
        logger.info(f"Optimize request for {request.quantity} {request.commodity} -> order {order.id}")
        return OrderResponse.from_order(order, persisted=not request.dryRun)

    async def eligible_hedges(
        self,
        commodity: str,
        side: PhysicalSide,
        level: Optional[PhysicalLevel] = None,
        ref_id: Optional[str] = None,
        show_all: bool = False,
    ) -> List[HedgeResponse]:
        return await asyncio.to_thread(
            self._eligible_hedges_sync, commodity, side, level, ref_id, show_all
        )

    def _eligible_hedges_sync(
        self,
        commodity: str,
        side: PhysicalSide,
        level: Optional[PhysicalLevel],
        ref_id: Optional[str],
        show_all: bool,
    ) -> List[HedgeResponse]:
        if (level is None) != (ref_id is None):
            raise ValueError("level and refId must be given together")
        scope = make_ref(level, ref_id) if level is not None else None
        hedges = self.engine.eligible_hedges(commodity, side, scope=scope, show_all=show_all)
        return [HedgeResponse.from_eligible(h) for h in hedges]

    async def create_fixing(self, request: FixingCreateRequest) -> FixingResponse:
        return await asyncio.to_thread(self._create_fixing_sync, request)

    def _create_fixing_sync(self, request: FixingCreateRequest) -> FixingResponse:
        fixing_request = FixingRequest(
            ref=make_ref(request.level, request.refId),
            side=request.side,
            commodity=request.commodity,
            allocations=[
                AllocationRequest(hedge_execution_id=a.hedgeExecutionId, quantity=a.quantity)
                for a in request.allocations
            ],
            fixing_price=request.fixingPrice,
            fixed_at=request.fixedAt or date.today(),
            currency=request.currency or self.engine.config_manager.get_default_currency(),
            notes=request.notes,
            show_all_hedges=request.showAllHedges,
        )
        return FixingResponse.from_detail(self.engine.fix_price(fixing_request))

    async def list_fixings(
        self, commodity: Optional[str] = None, level: Optional[PhysicalLevel] = None
    ) -> List[FixingResponse]:
        fixings = await asyncio.to_thread(self.engine.list_fixings, commodity, level)
        return [FixingResponse.from_fixing(f) for f in fixings]

    async def get_fixing(self, fixing_id: int) -> FixingResponse:
        detail = await asyncio.to_thread(self.engine.get_fixing, fixing_id)
        return FixingResponse.from_detail(detail)

    async def net_exposure(self, order_id: str) -> ExposureResponse:
        exposure = await asyncio.to_thread(self.engine.net_exposure, order_id)
        return ExposureResponse.from_exposure(exposure)

    async def available_quantity(self, level: PhysicalLevel, ref_id: str) -> AvailableQuantityResponse:
        return await asyncio.to_thread(self._available_sync, level, ref_id)

    def _available_sync(self, level: PhysicalLevel, ref_id: str) -> AvailableQuantityResponse:
        ref = make_ref(level, ref_id)
        physical = self.engine.store.physical_quantity(ref)
        fixed = self.engine.allocation_engine.fixed_quantity(ref)
        available = self.engine.available_unfixed_quantity(ref)
        return AvailableQuantityResponse(
            level=ref.level,
            refId=str(ref.id),
            physicalQuantity=float(physical),
            fixedQuantity=float(fixed),
            availableQuantity=float(available),
        )

    async def has_open_hedge(self, level: PhysicalLevel, ref_id: str) -> HasOpenHedgeResponse:
        ref = make_ref(level, ref_id)
        result = await asyncio.to_thread(self.engine.has_open_hedge, ref)
        return HasOpenHedgeResponse(level=ref.level, refId=str(ref.id), hasOpenHedge=result)
