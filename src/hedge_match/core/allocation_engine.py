"""Hedge allocation and price fixing."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from ..config import MatchingConfigManager
from ..errors import CapacityError, CapacityViolation, InputError
from ..models import (
    EligibleHedge,
    FixingRequest,
    HedgeExecutionUpdate,
    HedgeLink,
    PhysicalRef,
    PricingFixing,
    derive_hedge_status,
)
from ..persistence.store import MatchingStore
from .hedge_resolver import HedgeEligibilityResolver

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class AllocationEngine:
    """Validates hedge allocations against a physical exposure and commits a fixing.

    All validation happens before the store is written to. The commit is a
    single store transaction that inserts the fixing, one link per hedge and
    the hedges' new open quantities, or nothing at all.
    """

    def __init__(
        self,
        store: MatchingStore,
        resolver: Optional[HedgeEligibilityResolver] = None,
        config_manager: Optional[MatchingConfigManager] = None,
    ):
        """Initialize the engine.

        Args:
            store: Persistent store for fixings and hedges
            resolver: Hedge eligibility resolver; built on ``store`` if None
            config_manager: Configuration manager; defaults loaded if None
        """
        self.store = store
        self.resolver = resolver or HedgeEligibilityResolver(store)
        self.config_manager = config_manager or MatchingConfigManager()
        logger.info("Initialized AllocationEngine")

    def fixed_quantity(self, ref: PhysicalRef) -> Decimal:
        """Sum of non-deleted fixing quantities for a reference."""
        return sum(
            (f.quantity for f in self.store.fetch_existing_fixings(ref) if not f.is_deleted),
            ZERO,
        )

    def available_unfixed_quantity(self, ref: PhysicalRef) -> Decimal:
        """Physical quantity of ``ref`` not yet covered by a fixing.

        Raises:
            NotFoundError: If the reference does not exist
        """
        physical = self.store.physical_quantity(ref)
        return max(ZERO, physical - self.fixed_quantity(ref))

    def suggest_allocation(self, ref: PhysicalRef, hedge: EligibleHedge) -> Decimal:
        """Default quantity when a single hedge is picked for ``ref``."""
        return min(self.available_unfixed_quantity(ref), hedge.open_quantity)

    def fix_price(self, request: FixingRequest) -> PricingFixing:
        """Fix the price of a physical quantity against selected hedges.

        Args:
            request: Reference, side, commodity, per-hedge quantities and price

        Returns:
            The committed PricingFixing with its id

        Raises:
            InputError: Invalid quantities or price, duplicate or ineligible hedges
            NotFoundError: Unknown physical reference
            CapacityError: Allocations exceed the unfixed physical quantity
                or a hedge's open quantity
            ConcurrencyError: Store state moved between validation and commit
        """
        self._validate_input(request)

        expected_fixed = self.fixed_quantity(request.ref)
        physical = self.store.physical_quantity(request.ref)
        available = max(ZERO, physical - expected_fixed)
        candidates = self._candidates(request)
        self._validate_capacity(request, available, candidates)

        fixing_price = request.fixing_price
        now = datetime.now()
        fixing = PricingFixing(
            ref=request.ref,
            commodity=request.commodity.strip(),
            quantity=request.total_quantity,
            final_price=fixing_price,
            currency=request.currency or self.config_manager.get_default_currency(),
            fixed_at=request.fixed_at,
            notes=request.notes,
            created_at=now,
        )

        links: List[HedgeLink] = []
        updates: List[HedgeExecutionUpdate] = []
        for alloc in request.allocations:
            hedge = candidates[alloc.hedge_execution_id]
            execution = hedge.execution
            links.append(
                HedgeLink(
                    hedge_execution_id=execution.id,
                    ref=request.ref,
                    allocated_quantity=alloc.quantity,
                    side=request.side,
                    direction=execution.direction,
                    exec_price=execution.executed_price,
                    fixing_price=fixing_price,
                    commodity=fixing.commodity,
                    created_at=now,
                )
            )

            new_open = max(ZERO, hedge.open_quantity - alloc.quantity)
            closed = new_open == 0
            updates.append(
                HedgeExecutionUpdate(
                    hedge_execution_id=execution.id,
                    expected_open_quantity=hedge.open_quantity,
                    open_quantity=new_open,
                    status=derive_hedge_status(new_open, execution.quantity),
                    closed_price=fixing_price if closed else execution.closed_price,
                    closed_at=now if closed else execution.closed_at,
                )
            )
            logger.debug(
                f"Allocating {alloc.quantity} from hedge {execution.id}: open {hedge.open_quantity} -> {new_open}"
            )

        committed = self.store.commit_fixing(fixing, links, updates, expected_fixed)
        logger.info(f"Fixed {committed.quantity} of {request.ref.key} at {fixing_price}")
        return committed

    def _validate_input(self, request: FixingRequest) -> None:
        if not request.commodity or not request.commodity.strip():
            raise InputError("Commodity is required", field="commodity")
        if not request.allocations:
            raise InputError("At least one hedge allocation is required", field="allocations")

        seen = set()
        for alloc in request.allocations:
            if alloc.quantity is None or alloc.quantity <= 0:
                raise InputError(
                    f"Allocation quantity for hedge {alloc.hedge_execution_id} must be positive",
                    field="quantity",
                    value=alloc.quantity,
                )
            if alloc.hedge_execution_id in seen:
                raise InputError(
                    f"Hedge {alloc.hedge_execution_id} selected more than once",
                    field="hedge_execution_id",
                    value=alloc.hedge_execution_id,
                )
            seen.add(alloc.hedge_execution_id)

        if request.fixing_price is None or request.fixing_price <= 0:
            raise InputError(
                "Fixing price must be positive", field="fixing_price", value=request.fixing_price
            )

    def _candidates(self, request: FixingRequest) -> Dict[str, EligibleHedge]:
        eligible = self.resolver.resolve(
            request.commodity,
            request.side,
            scope=request.ref,
            show_all=request.show_all_hedges,
        )
        by_id = {h.id: h for h in eligible}
        for alloc in request.allocations:
            if alloc.hedge_execution_id not in by_id:
                logger.warning(
                    f"Rejected fixing for {request.ref.key}: hedge {alloc.hedge_execution_id} is not eligible"
                )
                raise InputError(
                    f"Hedge {alloc.hedge_execution_id} is not eligible for {request.ref.key}",
                    field="hedge_execution_id",
                    value=alloc.hedge_execution_id,
                )
        return by_id

    def _validate_capacity(
        self,
        request: FixingRequest,
        available: Decimal,
        candidates: Dict[str, EligibleHedge],
    ) -> None:
        violations: List[CapacityViolation] = []

        total = request.total_quantity
        if total > available:
            violations.append(
                CapacityViolation(
                    item=request.ref.key, kind="physical", requested=total, limit=available
                )
            )

        for alloc in request.allocations:
            open_quantity = candidates[alloc.hedge_execution_id].open_quantity
            if alloc.quantity > open_quantity:
                violations.append(
                    CapacityViolation(
                        item=alloc.hedge_execution_id,
                        kind="hedge",
                        requested=alloc.quantity,
                        limit=open_quantity,
                    )
                )

        if violations:
            logger.warning(
                f"Rejected fixing for {request.ref.key}: {len(violations)} capacity violation(s)"
            )
            raise CapacityError(violations)
