"""Net hedge exposure across an order and its shipments."""

from decimal import Decimal
from typing import Iterable, List, Optional
import logging

from ..models import (
    ExposureContribution,
    ExposureLabel,
    HedgeExecution,
    HedgeLink,
    NetExposure,
    OrderRef,
    PhysicalRef,
    ShipmentRef,
)
from ..persistence.store import MatchingStore

logger = logging.getLogger(__name__)

DEFAULT_FLAT_EPSILON = Decimal("0.01")


def aggregate_exposure(
    order_id: str,
    links: Iterable[HedgeLink],
    executions: Iterable[HedgeExecution],
    epsilon: Decimal = DEFAULT_FLAT_EPSILON,
) -> NetExposure:
    """Net open hedge quantity over the executions linked to an order.

    Each distinct, non-deleted execution counts once with its current open
    quantity, signed +1 for Buy and -1 for Sell. Links to deleted or unknown
    executions are ignored.

    Args:
        order_id: Order the exposure is reported for
        links: Non-deleted links to the order or its shipments
        executions: Hedge executions referenced by ``links``
        epsilon: Absolute net below which the position is Flat

    Returns:
        NetExposure with label Flat, Long or Short
    """
    by_id = {e.id: e for e in executions if e.deleted_at is None}

    contributions: List[ExposureContribution] = []
    seen = set()
    net = Decimal("0")
    for link in links:
        if link.deleted_at is not None or link.hedge_execution_id in seen:
            continue
        execution = by_id.get(link.hedge_execution_id)
        if execution is None:
            continue
        seen.add(execution.id)

        signed = execution.open_quantity * execution.direction.sign
        net += signed
        contributions.append(
            ExposureContribution(
                hedge_execution_id=execution.id,
                direction=execution.direction.value,
                open_quantity=execution.open_quantity,
                signed_quantity=signed,
                link_level=link.ref.level,
                link_id=str(link.ref.id),
            )
        )

    if abs(net) < epsilon:
        return NetExposure(
            order_id=order_id, net=Decimal("0"), label=ExposureLabel.FLAT, contributions=contributions
        )
    label = ExposureLabel.LONG if net > 0 else ExposureLabel.SHORT
    return NetExposure(order_id=order_id, net=net, label=label, contributions=contributions)


class ExposureAggregator:
    """Computes exposure from the store on every call; nothing is cached."""

    def __init__(self, store: MatchingStore, epsilon: Optional[Decimal] = None):
        self.store = store
        self.epsilon = DEFAULT_FLAT_EPSILON if epsilon is None else epsilon

    def _order_scope(self, order_id: str) -> List[PhysicalRef]:
        refs: List[PhysicalRef] = [OrderRef(id=order_id)]
        refs.extend(s.ref for s in self.store.shipments_of(order_id))
        return refs

    def net_exposure(self, order_id: str) -> NetExposure:
        """Net long/short position for an order including its shipments.

        Raises:
            NotFoundError: If the order does not exist
        """
        order_id = str(order_id)
        self.store.physical_quantity(OrderRef(id=order_id))

        links = self.store.fetch_hedge_links(self._order_scope(order_id))
        executions = self.store.get_hedges(l.hedge_execution_id for l in links)
        exposure = aggregate_exposure(order_id, links, executions, self.epsilon)

        logger.debug(
            f"Exposure for order {order_id}: {exposure.display} from {len(exposure.contributions)} hedges"
        )
        return exposure

    def has_open_hedge(self, ref: PhysicalRef) -> bool:
        """Whether an open, non-deleted hedge is linked to ``ref``.

        A shipment is checked together with its parent order.
        """
        if isinstance(ref, ShipmentRef):
            refs = self.store.lineage(ref)
        else:
            refs = [ref]

        links = self.store.fetch_hedge_links(refs)
        if not links:
            return False
        executions = self.store.get_hedges(l.hedge_execution_id for l in links)
        return any(e.is_open for e in executions)
