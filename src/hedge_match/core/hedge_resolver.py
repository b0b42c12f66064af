"""Selection of hedge executions that may be allocated to a physical exposure."""

from typing import List, Optional
import logging

from ..errors import InputError
from ..models import EligibleHedge, HedgeDirection, PhysicalRef, PhysicalSide
from ..persistence.store import MatchingStore

logger = logging.getLogger(__name__)


class HedgeEligibilityResolver:
    """Finds open hedge executions that can offset a physical position.

    A hedge is eligible when it is open or partially closed, not deleted,
    of the same commodity, and of the direction opposite to the physical
    side. With a scope it must also have been requested for that reference
    or one of its ancestors.
    """

    def __init__(self, store: MatchingStore):
        self.store = store

    @staticmethod
    def hedge_direction_for(side: PhysicalSide) -> HedgeDirection:
        """Map a physical side to the hedge direction that offsets it.

        Args:
            side: Physical exposure side

        Returns:
            BUY for sell-side exposure, SELL for buy-side exposure
        """
        side = PhysicalSide(side)
        return HedgeDirection.BUY if side == PhysicalSide.SELL else HedgeDirection.SELL

    def resolve(
        self,
        commodity: str,
        side: PhysicalSide,
        scope: Optional[PhysicalRef] = None,
        show_all: bool = False,
    ) -> List[EligibleHedge]:
        """List eligible hedge executions with their open quantity.

        Args:
            commodity: Commodity of the physical exposure
            side: Physical side being fixed
            scope: Reference whose lineage hedges must belong to
            show_all: Ignore the scope filter

        Returns:
            Eligible hedges in store order

        Raises:
            InputError: If commodity is missing
        """
        if not commodity or not commodity.strip():
            raise InputError("Commodity is required", field="commodity")

        direction = self.hedge_direction_for(side)
        executions = self.store.fetch_eligible_hedges(commodity.strip(), direction)

        allowed_keys = None
        if scope is not None and not show_all:
            allowed_keys = {ref.key for ref in self.store.lineage(scope)}

        eligible: List[EligibleHedge] = []
        for execution in executions:
            if not execution.is_open or execution.open_quantity <= 0:
                continue
            if allowed_keys is not None:
                if execution.source_ref is None or execution.source_ref.key not in allowed_keys:
                    continue
            eligible.append(
                EligibleHedge(execution=execution, open_quantity=execution.open_quantity)
            )

        logger.debug(
            f"Resolved {len(eligible)}/{len(executions)} {direction.value} hedges for "
            f"{commodity} {PhysicalSide(side).value}" + (f" scoped to {scope.key}" if allowed_keys else "")
        )
        return eligible
