"""Main entry point for the ticket matching and hedge fixing engine."""

import logging
import os
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Union
import argparse
import sys

from .cli import MatchingDisplay
from .config import MatchingConfigManager
from .core import (
    AllocationEngine,
    ExposureAggregator,
    HedgeEligibilityResolver,
    HedgeFactory,
    ShipmentFactory,
    TicketFactory,
)
from .errors import InputError, MatchingError
from .matchers import BaseTicketMatcher, GreedyTicketMatcher
from .models import (
    AllocationRequest,
    EligibleHedge,
    FixingDetail,
    FixingRequest,
    NetExposure,
    Order,
    PhysicalLevel,
    PhysicalRef,
    PhysicalSide,
    PricingFixing,
    TicketSide,
    make_ref,
)
from .persistence import MatchingStore, SQLiteMatchingStore
from .pricing import PricingCalculator

DEFAULT_DB_PATH = "hedge_match.db"

logger = logging.getLogger(__name__)


def default_db_path() -> str:
    """Database path from HEDGE_MATCH_DB, or the default file name."""
    return os.getenv("HEDGE_MATCH_DB", DEFAULT_DB_PATH)


class MatchingEngine:
    """Wires configuration, store, matcher and fixing components together.

    Every public operation is one unit of work against the store.
    """

    config_manager: MatchingConfigManager
    store: MatchingStore
    calculator: PricingCalculator
    matcher: BaseTicketMatcher
    resolver: HedgeEligibilityResolver
    allocation_engine: AllocationEngine
    exposure: ExposureAggregator

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        config_manager: Optional[MatchingConfigManager] = None,
        store: Optional[MatchingStore] = None,
        matcher: Optional[BaseTicketMatcher] = None,
    ):
        """Initialize the matching engine.

        Args:
            db_path: SQLite file; defaults to HEDGE_MATCH_DB or hedge_match.db
            config_manager: Optional config manager. Creates default if None.
            store: Store to use instead of opening ``db_path``
            matcher: Ticket matcher; greedy by default
        """
        self.config_manager = config_manager or MatchingConfigManager()
        config = self.config_manager.matching_config

        self.store = store or SQLiteMatchingStore(
            db_path or default_db_path(), order_id_attempts=config.order_id_attempts
        )
        self.calculator = PricingCalculator(
            policy=config.pricing_policy,
            payable_percent_threshold=config.payable_percent_threshold,
        )
        self.matcher = matcher or GreedyTicketMatcher(self.config_manager, self.calculator)
        self.resolver = HedgeEligibilityResolver(self.store)
        self.allocation_engine = AllocationEngine(self.store, self.resolver, self.config_manager)
        self.exposure = ExposureAggregator(self.store, config.flat_epsilon)

        self.ticket_factory = TicketFactory()
        self.hedge_factory = HedgeFactory()
        self.shipment_factory = ShipmentFactory()

        logger.info(f"Initialized matching engine with {self.matcher.__class__.__name__}")

    # -- Ticket matching --

    def optimize_and_create_order(
        self, commodity: str, target_quantity: Decimal, dry_run: bool = False
    ) -> Order:
        """Match approved tickets for ``commodity`` and persist the order.

        Args:
            commodity: Commodity type
            target_quantity: Quantity to cover on both sides
            dry_run: Return the proposed order without writing it

        Returns:
            The persisted order, or the proposal when ``dry_run``

        Raises:
            InputError: Missing/unknown commodity or non-positive quantity
            LiquidityError: Not enough approved tickets on a side
            MarginError: Average buy price not below average sell price
            ConcurrencyError: Tickets were consumed by another order meanwhile
        """
        self.matcher.validate_request(commodity, target_quantity)
        commodity = commodity.strip()
        if not self.config_manager.is_known_commodity(commodity):
            raise InputError(f"Unknown commodity: {commodity}", field="commodity", value=commodity)

        buys = self.store.fetch_approved_tickets(commodity, TicketSide.BUY)
        sells = self.store.fetch_approved_tickets(commodity, TicketSide.SELL)
        logger.info(f"Optimizing {target_quantity} {commodity}: {len(buys)} buy / {len(sells)} sell candidates")

        order = self.matcher.optimize(commodity, target_quantity, buys, sells)
        if dry_run:
            return order
        return self.store.persist_order(order, id_factory=self.matcher.generate_order_id)

    # -- Hedge fixing --

    def eligible_hedges(
        self,
        commodity: str,
        side: PhysicalSide,
        scope: Optional[PhysicalRef] = None,
        show_all: bool = False,
    ) -> List[EligibleHedge]:
        return self.resolver.resolve(commodity, side, scope=scope, show_all=show_all)

    def available_unfixed_quantity(self, ref: PhysicalRef) -> Decimal:
        return self.allocation_engine.available_unfixed_quantity(ref)

    def fix_price(self, request: FixingRequest) -> FixingDetail:
        """Commit a fixing and return it with its hedge links."""
        fixing = self.allocation_engine.fix_price(request)
        return FixingDetail(fixing=fixing, links=self.store.links_for_fixing(fixing.id))

    def get_fixing(self, fixing_id: int) -> FixingDetail:
        fixing = self.store.get_fixing(fixing_id)
        return FixingDetail(fixing=fixing, links=self.store.links_for_fixing(fixing_id))

    def list_fixings(
        self, commodity: Optional[str] = None, level: Optional[PhysicalLevel] = None
    ) -> List[PricingFixing]:
        return self.store.list_fixings(commodity=commodity, level=level)

    def delete_fixing(self, fixing_id: int) -> None:
        self.store.soft_delete_fixing(fixing_id)

    # -- Exposure --

    def net_exposure(self, order_id: str) -> NetExposure:
        return self.exposure.net_exposure(order_id)

    def has_open_hedge(self, ref: PhysicalRef) -> bool:
        return self.exposure.has_open_hedge(ref)

    # -- Reference data --

    def load_records(
        self,
        tickets_csv: Optional[Path] = None,
        hedges_csv: Optional[Path] = None,
        shipments_csv: Optional[Path] = None,
    ) -> Dict[str, int]:
        """Seed the store from CSV exports.

        Shipments are loaded last since they reference persisted orders.

        Returns:
            Number of records inserted per kind
        """
        counts: Dict[str, int] = {}
        if tickets_csv:
            tickets = self.ticket_factory.from_csv(tickets_csv)
            for ticket in tickets:
                self.store.add_ticket(ticket)
            counts["tickets"] = len(tickets)
        if hedges_csv:
            hedges = self.hedge_factory.from_csv(hedges_csv)
            for hedge in hedges:
                self.store.add_hedge(hedge)
            counts["hedges"] = len(hedges)
        if shipments_csv:
            shipments = self.shipment_factory.from_csv(shipments_csv)
            for shipment in shipments:
                self.store.add_shipment(shipment)
            counts["shipments"] = len(shipments)
        logger.info(f"Loaded records: {counts}")
        return counts


def setup_logging(log_level: str = "NONE") -> None:
    """Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, NONE)
    """
    # Remove any existing handlers to avoid duplicates
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_level.upper() == "NONE":
        logging.getLogger().setLevel(logging.CRITICAL + 1)  # Higher than CRITICAL
        return

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value}")


def _allocation_arg(value: str) -> AllocationRequest:
    hedge_id, sep, qty = value.partition("=")
    if not sep or not hedge_id:
        raise argparse.ArgumentTypeError(f"expected HEDGE_ID=QTY, got {value}")
    return AllocationRequest(hedge_execution_id=hedge_id.strip(), quantity=_decimal_arg(qty))


def _ref_from_args(args: argparse.Namespace, required: bool = True) -> Optional[PhysicalRef]:
    for level in ("order", "shipment", "ticket"):
        ref_id = getattr(args, level, None)
        if ref_id is not None:
            return make_ref(level, ref_id)
    if required:
        raise InputError("One of --order, --shipment or --ticket is required")
    return None


def _add_ref_args(parser: argparse.ArgumentParser, ticket: bool = True) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--order", help="Order id")
    group.add_argument("--shipment", type=int, help="Shipment id")
    if ticket:
        group.add_argument("--ticket", type=int, help="Ticket id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ticket matching and hedge price fixing")
    parser.add_argument(
        "--db",
        default=None,
        help=f"SQLite database path (default: $HEDGE_MATCH_DB or {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "NONE"],
        default="NONE",
        help="Set logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database schema")

    load = sub.add_parser("load", help="Load tickets, hedges and shipments from CSV")
    load.add_argument("--tickets", type=Path, help="Tickets CSV")
    load.add_argument("--hedges", type=Path, help="Hedge executions CSV")
    load.add_argument("--shipments", type=Path, help="Shipments CSV")

    optimize = sub.add_parser("optimize", help="Match tickets into a new order")
    optimize.add_argument("--commodity", required=True)
    optimize.add_argument("--quantity", type=_decimal_arg, required=True, help="Target quantity (MT)")
    optimize.add_argument("--dry-run", action="store_true", help="Show the proposal without saving")
    optimize.add_argument("--show-rules", action="store_true", help="Describe the matching algorithm")

    hedges = sub.add_parser("hedges", help="List hedges eligible for a physical exposure")
    hedges.add_argument("--commodity", required=True)
    hedges.add_argument("--side", choices=[s.value for s in PhysicalSide], required=True)
    _add_ref_args(hedges)
    hedges.add_argument("--all", action="store_true", help="Include hedges requested for other references")

    fix = sub.add_parser("fix", help="Fix a physical quantity against hedges")
    _add_ref_args(fix)
    fix.add_argument("--side", choices=[s.value for s in PhysicalSide], required=True)
    fix.add_argument("--commodity", required=True)
    fix.add_argument(
        "--alloc",
        type=_allocation_arg,
        action="append",
        default=[],
        metavar="HEDGE_ID=QTY",
        help="Hedge allocation; repeat for several hedges",
    )
    fix.add_argument("--price", type=_decimal_arg, required=True, help="Fixing price")
    fix.add_argument("--date", type=date.fromisoformat, default=None, help="Fixing date (YYYY-MM-DD)")
    fix.add_argument("--currency", default=None)
    fix.add_argument("--notes", default=None)
    fix.add_argument("--all", action="store_true", help="Allow hedges requested for other references")

    exposure = sub.add_parser("exposure", help="Net hedge exposure of an order")
    exposure.add_argument("--order", required=True)

    fixings = sub.add_parser("fixings", help="List price fixings")
    fixings.add_argument("--commodity", default=None)
    fixings.add_argument("--level", choices=[l.value for l in PhysicalLevel], default=None)

    fixing = sub.add_parser("fixing", help="Show one fixing with its hedge links")
    fixing.add_argument("--id", type=int, required=True)

    return parser


def run_command(engine: MatchingEngine, args: argparse.Namespace, display: MatchingDisplay) -> None:
    """Dispatch a parsed command. MatchingError propagates to the caller."""
    if args.command == "init-db":
        display.show_success("Database ready")

    elif args.command == "load":
        counts = engine.load_records(args.tickets, args.hedges, args.shipments)
        display.show_loading_summary(counts)

    elif args.command == "optimize":
        if args.show_rules:
            display.show_rule_info(engine.matcher.get_rule_info())
        order = engine.optimize_and_create_order(args.commodity, args.quantity, dry_run=args.dry_run)
        display.show_order(order, persisted=not args.dry_run)

    elif args.command == "hedges":
        scope = _ref_from_args(args, required=False)
        hedges = engine.eligible_hedges(args.commodity, PhysicalSide(args.side), scope, args.all)
        available = engine.available_unfixed_quantity(scope) if scope else None
        display.show_eligible_hedges(hedges, available)

    elif args.command == "fix":
        request = FixingRequest(
            ref=_ref_from_args(args),
            side=PhysicalSide(args.side),
            commodity=args.commodity,
            allocations=args.alloc,
            fixing_price=args.price,
            fixed_at=args.date or date.today(),
            currency=args.currency or engine.config_manager.get_default_currency(),
            notes=args.notes,
            show_all_hedges=args.all,
        )
        display.show_fixing(engine.fix_price(request))

    elif args.command == "exposure":
        display.show_exposure(engine.net_exposure(args.order))

    elif args.command == "fixings":
        display.show_fixings(engine.list_fixings(args.commodity, args.level))

    elif args.command == "fixing":
        display.show_fixing(engine.get_fixing(args.id))


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the hedge-match command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    display = MatchingDisplay()

    try:
        engine = MatchingEngine(db_path=args.db)
        run_command(engine, args, display)
    except MatchingError as e:
        logger.warning(f"{args.command} rejected: {e.reason}: {e}")
        display.show_error(str(e))
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        display.show_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
