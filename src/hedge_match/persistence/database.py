"""SQLite database: connection management, schema creation, transactions."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Quantities and prices are stored as TEXT to keep Decimal values exact.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tickets (
    id INTEGER PRIMARY KEY,
    side TEXT NOT NULL,
    commodity TEXT NOT NULL,
    status TEXT NOT NULL,
    quantity TEXT NOT NULL,
    remaining_quantity TEXT NOT NULL,
    pricing_type TEXT NOT NULL,
    signed_price TEXT,
    reference_price TEXT,
    payable_percent TEXT,
    premium_discount TEXT,
    incoterms TEXT,
    ship_from TEXT,
    ship_to TEXT,
    metal_form TEXT,
    isri_grade TEXT,
    client_name TEXT
);

CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    commodity TEXT NOT NULL,
    allocated_quantity TEXT NOT NULL,
    buy_price TEXT NOT NULL,
    sell_price TEXT NOT NULL,
    margin TEXT NOT NULL,
    status TEXT NOT NULL,
    transaction_type TEXT NOT NULL,
    metal_form TEXT,
    isri_grade TEXT,
    ship_from TEXT,
    ship_to TEXT,
    product_details TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_allocations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT NOT NULL REFERENCES orders(id),
    ticket_id INTEGER NOT NULL REFERENCES tickets(id),
    side TEXT NOT NULL,
    quantity TEXT NOT NULL,
    unit_price TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS shipments (
    id INTEGER PRIMARY KEY,
    order_id TEXT NOT NULL REFERENCES orders(id),
    quantity TEXT NOT NULL,
    name TEXT,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS hedge_executions (
    id TEXT PRIMARY KEY,
    direction TEXT NOT NULL,
    commodity TEXT NOT NULL,
    quantity TEXT NOT NULL,
    open_quantity TEXT NOT NULL,
    executed_price TEXT NOT NULL,
    broker TEXT,
    executed_at TEXT,
    status TEXT NOT NULL,
    closed_price TEXT,
    closed_at TEXT,
    source_level TEXT,
    source_id TEXT,
    deleted_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS pricing_fixings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    level TEXT NOT NULL,
    ref_id TEXT NOT NULL,
    commodity TEXT NOT NULL,
    quantity TEXT NOT NULL,
    final_price TEXT NOT NULL,
    currency TEXT NOT NULL,
    fixed_at TEXT NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS hedge_links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fixing_id INTEGER NOT NULL REFERENCES pricing_fixings(id),
    hedge_execution_id TEXT NOT NULL REFERENCES hedge_executions(id),
    link_level TEXT NOT NULL,
    link_id TEXT NOT NULL,
    allocated_quantity TEXT NOT NULL,
    side TEXT NOT NULL,
    direction TEXT NOT NULL,
    exec_price TEXT NOT NULL,
    fixing_price TEXT NOT NULL,
    commodity TEXT NOT NULL,
    created_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_tickets_match ON tickets(commodity, side, status);
CREATE INDEX IF NOT EXISTS idx_hedges_eligible ON hedge_executions(commodity, direction, status);
CREATE INDEX IF NOT EXISTS idx_fixings_ref ON pricing_fixings(level, ref_id);
CREATE INDEX IF NOT EXISTS idx_links_ref ON hedge_links(link_level, link_id);
CREATE INDEX IF NOT EXISTS idx_links_fixing ON hedge_links(fixing_id);
CREATE INDEX IF NOT EXISTS idx_shipments_order ON shipments(order_id);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


class Database:
    """SQLite access with one connection per unit of work.

    Write transactions start with ``BEGIN IMMEDIATE`` so concurrent writers
    are serialized by SQLite's reserved lock. Schema auto-created on first
    initialize.
    """

    def __init__(self, path: Union[str, Path] = "hedge_match.db", timeout: float = 30.0):
        self.path = Path(path)
        self.timeout = timeout
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below
        conn = sqlite3.connect(str(self.path), timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def initialize(self) -> None:
        """Create the schema and record its version. Safe to call repeatedly."""
        if self._initialized:
            return
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)
            row = conn.execute("SELECT version FROM schema_version").fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_version VALUES (?)", (SCHEMA_VERSION,)
                )
        finally:
            conn.close()
        self._initialized = True
        logger.info(f"Initialized database at {self.path}")

    @contextmanager
    def read(self) -> Generator[sqlite3.Connection, None, None]:
        """Connection for read-only queries."""
        self.initialize()
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Serializable write transaction; rolls back on any exception."""
        self.initialize()
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()
