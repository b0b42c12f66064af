"""SQLite-backed implementation of the matching store."""

import logging
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from ..errors import ConcurrencyError, InputError, NotFoundError
from ..models import (
    HedgeDirection,
    HedgeExecution,
    HedgeExecutionUpdate,
    HedgeLink,
    HedgeStatus,
    OPEN_STATUSES,
    Order,
    OrderRef,
    PhysicalLevel,
    PhysicalRef,
    PhysicalSide,
    PricingFixing,
    Shipment,
    ShipmentRef,
    Ticket,
    TicketAllocation,
    TicketSide,
    TicketStatus,
    make_ref,
)
from .database import Database
from .store import MatchingStore

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _dec(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _txt(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):  # str enums
        return str(value.value)
    return str(value)


def _dt(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


class SQLiteMatchingStore(MatchingStore):
    """MatchingStore over a local SQLite database file."""

    def __init__(self, db: Union[Database, str, Path], order_id_attempts: int = 5):
        self.db = db if isinstance(db, Database) else Database(db)
        self.order_id_attempts = order_id_attempts
        self.db.initialize()

    # -- Row mapping --

    @staticmethod
    def _row_to_ticket(row: sqlite3.Row) -> Ticket:
        return Ticket(
            id=row["id"],
            side=TicketSide(row["side"]),
            commodity=row["commodity"],
            status=TicketStatus(row["status"]),
            quantity=Decimal(row["quantity"]),
            remaining_quantity=Decimal(row["remaining_quantity"]),
            pricing_type=row["pricing_type"],
            signed_price=_dec(row["signed_price"]),
            reference_price=_dec(row["reference_price"]),
            payable_percent=_dec(row["payable_percent"]),
            premium_discount=_dec(row["premium_discount"]),
            incoterms=row["incoterms"],
            ship_from=row["ship_from"],
            ship_to=row["ship_to"],
            metal_form=row["metal_form"],
            isri_grade=row["isri_grade"],
            client_name=row["client_name"],
        )

    @staticmethod
    def _row_to_hedge(row: sqlite3.Row) -> HedgeExecution:
        source_ref = None
        if row["source_level"]:
            source_ref = make_ref(row["source_level"], row["source_id"])
        return HedgeExecution(
            id=row["id"],
            direction=HedgeDirection(row["direction"]),
            commodity=row["commodity"],
            quantity=Decimal(row["quantity"]),
            open_quantity=Decimal(row["open_quantity"]),
            executed_price=Decimal(row["executed_price"]),
            broker=row["broker"],
            executed_at=_dt(row["executed_at"]),
            status=HedgeStatus(row["status"]),
            closed_price=_dec(row["closed_price"]),
            closed_at=_dt(row["closed_at"]),
            source_ref=source_ref,
            deleted_at=_dt(row["deleted_at"]),
        )

    @staticmethod
    def _row_to_fixing(row: sqlite3.Row) -> PricingFixing:
        return PricingFixing(
            id=row["id"],
            ref=make_ref(row["level"], row["ref_id"]),
            commodity=row["commodity"],
            quantity=Decimal(row["quantity"]),
            final_price=Decimal(row["final_price"]),
            currency=row["currency"],
            fixed_at=date.fromisoformat(row["fixed_at"]),
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_dt(row["deleted_at"]),
        )

    @staticmethod
    def _row_to_link(row: sqlite3.Row) -> HedgeLink:
        return HedgeLink(
            id=row["id"],
            fixing_id=row["fixing_id"],
            hedge_execution_id=row["hedge_execution_id"],
            ref=make_ref(row["link_level"], row["link_id"]),
            allocated_quantity=Decimal(row["allocated_quantity"]),
            side=PhysicalSide(row["side"]),
            direction=HedgeDirection(row["direction"]),
            exec_price=Decimal(row["exec_price"]),
            fixing_price=Decimal(row["fixing_price"]),
            commodity=row["commodity"],
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_dt(row["deleted_at"]),
        )

    # -- Physical hierarchy --

    def physical_quantity(self, ref: PhysicalRef) -> Decimal:
        if isinstance(ref, OrderRef):
            sql = "SELECT allocated_quantity AS qty FROM orders WHERE id = ?"
        elif isinstance(ref, ShipmentRef):
            sql = "SELECT quantity AS qty FROM shipments WHERE id = ? AND deleted_at IS NULL"
        else:
            sql = "SELECT quantity AS qty FROM tickets WHERE id = ?"
        with self.db.read() as conn:
            row = conn.execute(sql, (ref.id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Unknown physical reference {ref.key}")
        return Decimal(row["qty"])

    def parent_of(self, ref: PhysicalRef) -> Optional[PhysicalRef]:
        if not isinstance(ref, ShipmentRef):
            return None
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT order_id FROM shipments WHERE id = ?", (ref.id,)
            ).fetchone()
        return OrderRef(id=row["order_id"]) if row else None

    def shipments_of(self, order_id: str) -> List[Shipment]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM shipments WHERE order_id = ? AND deleted_at IS NULL ORDER BY id",
                (order_id,),
            ).fetchall()
        return [
            Shipment(id=r["id"], order_id=r["order_id"], quantity=Decimal(r["quantity"]), name=r["name"])
            for r in rows
        ]

    # -- Tickets and orders --

    def fetch_approved_tickets(self, commodity: str, side: TicketSide) -> List[Ticket]:
        with self.db.read() as conn:
            rows = conn.execute(
                """SELECT * FROM tickets
                   WHERE commodity = ? COLLATE NOCASE AND side = ? AND status = ?
                   ORDER BY id""",
                (commodity, side.value, TicketStatus.APPROVED.value),
            ).fetchall()
        return [self._row_to_ticket(r) for r in rows]

    def persist_order(
        self, order: Order, id_factory: Optional[Callable[[], str]] = None
    ) -> Order:
        with self.db.transaction() as conn:
            for alloc in order.allocations:
                self._check_ticket_capacity(conn, alloc)

            order_id = order.id
            attempts = 1
            while conn.execute("SELECT 1 FROM orders WHERE id = ?", (order_id,)).fetchone():
                if id_factory is None or attempts >= self.order_id_attempts:
                    raise ConcurrencyError(
                        f"Order id {order_id} already exists",
                        details={"order_id": order_id},
                    )
                logger.debug(f"Order id {order_id} taken; regenerating")
                order_id = id_factory()
                attempts += 1

            persisted = order.model_copy(update={"id": order_id})
            conn.execute(
                """INSERT INTO orders
                   (id, commodity, allocated_quantity, buy_price, sell_price, margin,
                    status, transaction_type, metal_form, isri_grade, ship_from,
                    ship_to, product_details, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    persisted.id,
                    persisted.commodity,
                    _txt(persisted.allocated_quantity),
                    _txt(persisted.buy_price),
                    _txt(persisted.sell_price),
                    _txt(persisted.margin),
                    _txt(persisted.status),
                    persisted.transaction_type,
                    persisted.metal_form,
                    persisted.isri_grade,
                    persisted.ship_from,
                    persisted.ship_to,
                    persisted.product_details,
                    _txt(persisted.created_at),
                ),
            )
            for alloc in persisted.allocations:
                conn.execute(
                    """INSERT INTO order_allocations
                       (order_id, ticket_id, side, quantity, unit_price)
                       VALUES (?, ?, ?, ?, ?)""",
                    (
                        persisted.id,
                        alloc.ticket_id,
                        alloc.side.value,
                        _txt(alloc.quantity),
                        _txt(alloc.unit_price),
                    ),
                )
                row = conn.execute(
                    "SELECT remaining_quantity FROM tickets WHERE id = ?", (alloc.ticket_id,)
                ).fetchone()
                conn.execute(
                    "UPDATE tickets SET remaining_quantity = ? WHERE id = ?",
                    (_txt(Decimal(row["remaining_quantity"]) - alloc.quantity), alloc.ticket_id),
                )

        logger.info(f"Persisted order {persisted.id} with {len(persisted.allocations)} ticket allocations")
        return persisted

    @staticmethod
    def _check_ticket_capacity(conn: sqlite3.Connection, alloc: TicketAllocation) -> None:
        row = conn.execute(
            "SELECT side, status, remaining_quantity FROM tickets WHERE id = ?",
            (alloc.ticket_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Unknown ticket {alloc.ticket_id}")
        remaining = Decimal(row["remaining_quantity"])
        if row["status"] != TicketStatus.APPROVED.value or remaining < alloc.quantity:
            raise ConcurrencyError(
                f"Ticket {alloc.ticket_id} changed since it was read: "
                f"{remaining} remaining, {alloc.quantity} allocated",
                details={"ticket_id": alloc.ticket_id, "remaining": remaining},
            )

    def get_order(self, order_id: str) -> Order:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Unknown order {order_id}")
            alloc_rows = conn.execute(
                "SELECT * FROM order_allocations WHERE order_id = ? ORDER BY id", (order_id,)
            ).fetchall()
        return Order(
            id=row["id"],
            commodity=row["commodity"],
            allocated_quantity=Decimal(row["allocated_quantity"]),
            buy_price=Decimal(row["buy_price"]),
            sell_price=Decimal(row["sell_price"]),
            margin=Decimal(row["margin"]),
            status=row["status"],
            transaction_type=row["transaction_type"],
            metal_form=row["metal_form"],
            isri_grade=row["isri_grade"],
            ship_from=row["ship_from"],
            ship_to=row["ship_to"],
            product_details=row["product_details"],
            created_at=datetime.fromisoformat(row["created_at"]),
            allocations=[
                TicketAllocation(
                    ticket_id=a["ticket_id"],
                    side=TicketSide(a["side"]),
                    quantity=Decimal(a["quantity"]),
                    unit_price=Decimal(a["unit_price"]),
                )
                for a in alloc_rows
            ],
        )

    # -- Hedges --

    def fetch_eligible_hedges(
        self, commodity: str, direction: HedgeDirection
    ) -> List[HedgeExecution]:
        with self.db.read() as conn:
            rows = conn.execute(
                """SELECT * FROM hedge_executions
                   WHERE commodity = ? COLLATE NOCASE AND direction = ? AND deleted_at IS NULL
                     AND status IN (?, ?)
                   ORDER BY executed_at, id""",
                (commodity, direction.value, *[s.value for s in OPEN_STATUSES]),
            ).fetchall()
        return [self._row_to_hedge(r) for r in rows]

    def get_hedges(self, hedge_ids: Iterable[str]) -> List[HedgeExecution]:
        ids = list(dict.fromkeys(hedge_ids))
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        with self.db.read() as conn:
            rows = conn.execute(
                f"SELECT * FROM hedge_executions WHERE id IN ({placeholders})", ids
            ).fetchall()
        by_id = {r["id"]: self._row_to_hedge(r) for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    # -- Fixings and links --

    @staticmethod
    def _fixed_quantity(conn: sqlite3.Connection, ref: PhysicalRef) -> Decimal:
        rows = conn.execute(
            """SELECT quantity FROM pricing_fixings
               WHERE level = ? AND ref_id = ? AND deleted_at IS NULL""",
            (ref.level, str(ref.id)),
        ).fetchall()
        return sum((Decimal(r["quantity"]) for r in rows), ZERO)

    def fetch_existing_fixings(self, ref: PhysicalRef) -> List[PricingFixing]:
        with self.db.read() as conn:
            rows = conn.execute(
                """SELECT * FROM pricing_fixings
                   WHERE level = ? AND ref_id = ? AND deleted_at IS NULL
                   ORDER BY id""",
                (ref.level, str(ref.id)),
            ).fetchall()
        return [self._row_to_fixing(r) for r in rows]

    def commit_fixing(
        self,
        fixing: PricingFixing,
        links: List[HedgeLink],
        updates: List[HedgeExecutionUpdate],
        expected_fixed_quantity: Decimal,
    ) -> PricingFixing:
        try:
            with self.db.transaction() as conn:
                current_fixed = self._fixed_quantity(conn, fixing.ref)
                if current_fixed != expected_fixed_quantity:
                    raise ConcurrencyError(
                        f"Fixed quantity for {fixing.ref.key} changed: "
                        f"expected {expected_fixed_quantity}, found {current_fixed}",
                        details={"ref": fixing.ref.key, "fixed_quantity": current_fixed},
                    )

                for update in updates:
                    row = conn.execute(
                        "SELECT open_quantity, deleted_at FROM hedge_executions WHERE id = ?",
                        (update.hedge_execution_id,),
                    ).fetchone()
                    if row is None or row["deleted_at"] is not None:
                        raise ConcurrencyError(
                            f"Hedge execution {update.hedge_execution_id} no longer available"
                        )
                    current_open = Decimal(row["open_quantity"])
                    if current_open != update.expected_open_quantity:
                        raise ConcurrencyError(
                            f"Hedge execution {update.hedge_execution_id} open quantity changed: "
                            f"expected {update.expected_open_quantity}, found {current_open}",
                            details={
                                "hedge_execution_id": update.hedge_execution_id,
                                "open_quantity": current_open,
                            },
                        )

                cur = conn.execute(
                    """INSERT INTO pricing_fixings
                       (level, ref_id, commodity, quantity, final_price, currency,
                        fixed_at, notes, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        fixing.ref.level,
                        str(fixing.ref.id),
                        fixing.commodity,
                        _txt(fixing.quantity),
                        _txt(fixing.final_price),
                        fixing.currency,
                        _txt(fixing.fixed_at),
                        fixing.notes,
                        _txt(fixing.created_at),
                    ),
                )
                fixing_id = cur.lastrowid

                for link in links:
                    conn.execute(
                        """INSERT INTO hedge_links
                           (fixing_id, hedge_execution_id, link_level, link_id,
                            allocated_quantity, side, direction, exec_price,
                            fixing_price, commodity, created_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            fixing_id,
                            link.hedge_execution_id,
                            link.ref.level,
                            str(link.ref.id),
                            _txt(link.allocated_quantity),
                            link.side.value,
                            link.direction.value,
                            _txt(link.exec_price),
                            _txt(link.fixing_price),
                            link.commodity,
                            _txt(link.created_at),
                        ),
                    )

                now = _txt(datetime.now())
                for update in updates:
                    conn.execute(
                        """UPDATE hedge_executions
                           SET open_quantity = ?, status = ?, closed_price = ?,
                               closed_at = ?, updated_at = ?
                           WHERE id = ?""",
                        (
                            _txt(update.open_quantity),
                            update.status.value,
                            _txt(update.closed_price),
                            _txt(update.closed_at),
                            now,
                            update.hedge_execution_id,
                        ),
                    )
        except sqlite3.IntegrityError as e:
            raise InputError(
                f"Fixing for {fixing.ref.key} rejected: unknown hedge execution or reference"
            ) from e

        logger.info(
            f"Committed fixing {fixing_id} for {fixing.ref.key}: "
            f"{fixing.quantity} @ {fixing.final_price} across {len(links)} hedges"
        )
        return fixing.model_copy(update={"id": fixing_id})

    def fetch_hedge_links(self, refs: Iterable[PhysicalRef]) -> List[HedgeLink]:
        refs = list(refs)
        if not refs:
            return []
        clause = " OR ".join("(link_level = ? AND link_id = ?)" for _ in refs)
        params: List[Any] = []
        for ref in refs:
            params.extend([ref.level, str(ref.id)])
        with self.db.read() as conn:
            rows = conn.execute(
                f"SELECT * FROM hedge_links WHERE deleted_at IS NULL AND ({clause}) ORDER BY id",
                params,
            ).fetchall()
        return [self._row_to_link(r) for r in rows]

    def links_for_fixing(self, fixing_id: int) -> List[HedgeLink]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM hedge_links WHERE fixing_id = ? ORDER BY id", (fixing_id,)
            ).fetchall()
        return [self._row_to_link(r) for r in rows]

    def get_fixing(self, fixing_id: int) -> PricingFixing:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT * FROM pricing_fixings WHERE id = ?", (fixing_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Unknown fixing {fixing_id}")
        return self._row_to_fixing(row)

    def list_fixings(
        self, commodity: Optional[str] = None, level: Optional[PhysicalLevel] = None
    ) -> List[PricingFixing]:
        sql = "SELECT * FROM pricing_fixings WHERE deleted_at IS NULL"
        params: List[Any] = []
        if commodity:
            sql += " AND commodity = ?"
            params.append(commodity)
        if level:
            sql += " AND level = ?"
            params.append(PhysicalLevel(level).value)
        sql += " ORDER BY created_at DESC, id DESC"
        with self.db.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_fixing(r) for r in rows]

    def soft_delete_fixing(self, fixing_id: int) -> None:
        now = _txt(datetime.now())
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE pricing_fixings SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (now, fixing_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Unknown or already deleted fixing {fixing_id}")
            conn.execute(
                "UPDATE hedge_links SET deleted_at = ? WHERE fixing_id = ? AND deleted_at IS NULL",
                (now, fixing_id),
            )
        logger.info(f"Soft-deleted fixing {fixing_id}")

    # -- Reference data --

    def add_ticket(self, ticket: Ticket) -> Ticket:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """INSERT INTO tickets
                       (id, side, commodity, status, quantity, remaining_quantity,
                        pricing_type, signed_price, reference_price, payable_percent,
                        premium_discount, incoterms, ship_from, ship_to, metal_form,
                        isri_grade, client_name)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        ticket.id,
                        ticket.side.value,
                        ticket.commodity,
                        ticket.status.value,
                        _txt(ticket.quantity),
                        _txt(ticket.remaining_quantity),
                        ticket.pricing_type.value,
                        _txt(ticket.signed_price),
                        _txt(ticket.reference_price),
                        _txt(ticket.payable_percent),
                        _txt(ticket.premium_discount),
                        ticket.incoterms,
                        ticket.ship_from,
                        ticket.ship_to,
                        ticket.metal_form,
                        ticket.isri_grade,
                        ticket.client_name,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise InputError(f"Ticket {ticket.id} already exists", field="id") from e
        return ticket

    def add_hedge(self, hedge: HedgeExecution) -> HedgeExecution:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """INSERT INTO hedge_executions
                       (id, direction, commodity, quantity, open_quantity,
                        executed_price, broker, executed_at, status, closed_price,
                        closed_at, source_level, source_id, deleted_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        hedge.id,
                        hedge.direction.value,
                        hedge.commodity,
                        _txt(hedge.quantity),
                        _txt(hedge.open_quantity),
                        _txt(hedge.executed_price),
                        hedge.broker,
                        _txt(hedge.executed_at),
                        hedge.status.value,
                        _txt(hedge.closed_price),
                        _txt(hedge.closed_at),
                        hedge.source_ref.level if hedge.source_ref else None,
                        str(hedge.source_ref.id) if hedge.source_ref else None,
                        _txt(hedge.deleted_at),
                        _txt(datetime.now()),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise InputError(f"Hedge execution {hedge.id} already exists", field="id") from e
        return hedge

    def add_shipment(self, shipment: Shipment) -> Shipment:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO shipments (id, order_id, quantity, name) VALUES (?, ?, ?, ?)",
                    (shipment.id, shipment.order_id, _txt(shipment.quantity), shipment.name),
                )
        except sqlite3.IntegrityError as e:
            raise InputError(
                f"Shipment {shipment.id} rejected: unknown order {shipment.order_id} or duplicate id"
            ) from e
        return shipment
