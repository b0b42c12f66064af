"""Factories for building tickets, hedges and shipments from tabular input."""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging

import pandas as pd

from ..models import (
    HedgeDirection,
    HedgeExecution,
    PricingType,
    Shipment,
    Ticket,
    TicketSide,
    TicketStatus,
    derive_hedge_status,
    parse_hedge_status,
    make_ref,
)
from ..utils import safe_decimal, safe_int, safe_str

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


class _RecordFactory(ABC, Generic[RecordT]):
    """Shared DataFrame/CSV/JSON plumbing. Subclasses build one record per row."""

    record_name = "record"
    required_fields: List[str] = []
    # Source column name (lowercased) -> canonical column name
    column_aliases: Dict[str, str] = {}
    # camelCase JSON key -> canonical column name
    json_field_mappings: Dict[str, str] = {}

    def from_dataframe(self, df: pd.DataFrame) -> List[RecordT]:
        """Create records from a pandas DataFrame.

        Args:
            df: DataFrame with one record per row

        Returns:
            Records built from valid rows; invalid rows are skipped

        Raises:
            ValueError: If required columns are missing
        """
        if df.empty:
            logger.warning(f"Empty DataFrame provided for {self.record_name}s")
            return []

        logger.info(f"Creating {len(df)} {self.record_name}s from DataFrame")

        df = df.copy()
        df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
        df = df.rename(columns=self.column_aliases)
        self._validate_required_fields(df)
        df = df.reset_index(drop=True)

        records: List[RecordT] = []
        for i, (_, row) in enumerate(df.iterrows()):
            try:
                records.append(self._create_record(row))
            except Exception as e:
                logger.warning(f"Skipping {self.record_name} row {i}: {e}")
                continue

        logger.info(f"Successfully created {len(records)} {self.record_name}s")
        return records

    def from_csv(self, csv_path: Path) -> List[RecordT]:
        """Create records from a CSV file.

        Raises:
            FileNotFoundError: If the CSV file doesn't exist
            ValueError: If the CSV cannot be parsed or lacks required columns
        """
        csv_path = Path(csv_path)
        logger.info(f"Loading {self.record_name}s from {csv_path}")

        if not csv_path.exists():
            raise FileNotFoundError(f"{self.record_name.capitalize()} CSV file not found: {csv_path}")

        try:
            # Ids and numbers are parsed by the factory, not pandas
            df = pd.read_csv(csv_path, encoding="utf-8-sig", dtype=str)
        except Exception as e:
            logger.error(f"Error loading {self.record_name} CSV {csv_path}: {e}")
            raise ValueError(f"Failed to load {self.record_name} CSV: {e}") from e

        logger.info(f"Loaded {len(df)} rows from {csv_path.name}")
        return self.from_dataframe(df)

    def from_json(self, json_data: List[Dict[str, Any]]) -> List[RecordT]:
        """Create records from a list of JSON objects (camelCase or snake_case keys)."""
        if not json_data:
            logger.warning(f"Empty JSON data provided for {self.record_name}s")
            return []

        normalized = [
            {self.json_field_mappings.get(k, k.lower()): v for k, v in record.items()}
            for record in json_data
        ]
        return self.from_dataframe(pd.DataFrame(normalized))

    def _validate_required_fields(self, df: pd.DataFrame) -> None:
        missing = [f for f in self.required_fields if f not in df.columns]
        if missing:
            raise ValueError(f"Missing required fields for {self.record_name}s: {missing}")

    @abstractmethod
    def _create_record(self, row: pd.Series) -> RecordT:
        """Build one record from a normalized row; raise ValueError to skip it."""

    @staticmethod
    def _required(row: pd.Series, field: str) -> Any:
        value = row.get(field)
        if safe_str(value) is None:
            raise ValueError(f"Required field '{field}' is empty")
        return value


class TicketFactory(_RecordFactory[Ticket]):
    """Builds Ticket records.

    Accepts the back-office export names (``type``, ``commodity_type``,
    ``lme_price``, ``quantity_mt``) as well as the model's own field names.
    """

    record_name = "ticket"
    required_fields = ["id", "side", "commodity", "quantity"]
    column_aliases = {
        "ticket_id": "id",
        "type": "side",
        "commodity_type": "commodity",
        "quantity_mt": "quantity",
        "remaining_quantity_mt": "remaining_quantity",
        "lme_price": "reference_price",
        "client": "client_name",
    }
    json_field_mappings = {
        "ticketId": "id",
        "commodityType": "commodity",
        "quantityMt": "quantity",
        "remainingQuantity": "remaining_quantity",
        "pricingType": "pricing_type",
        "signedPrice": "signed_price",
        "lmePrice": "reference_price",
        "referencePrice": "reference_price",
        "payablePercent": "payable_percent",
        "premiumDiscount": "premium_discount",
        "shipFrom": "ship_from",
        "shipTo": "ship_to",
        "metalForm": "metal_form",
        "isriGrade": "isri_grade",
        "clientName": "client_name",
    }

    def _create_record(self, row: pd.Series) -> Ticket:
        ticket_id = safe_int(self._required(row, "id"))
        if ticket_id is None:
            raise ValueError(f"Invalid ticket id: {row.get('id')}")

        quantity = safe_decimal(self._required(row, "quantity"))
        if quantity is None:
            raise ValueError(f"Invalid quantity: {row.get('quantity')}")
        remaining = safe_decimal(row.get("remaining_quantity"), default=quantity)

        return Ticket(
            id=ticket_id,
            side=TicketSide(safe_str(self._required(row, "side")).capitalize()),
            commodity=safe_str(self._required(row, "commodity")),
            status=TicketStatus(
                safe_str(row.get("status"), default=TicketStatus.APPROVED.value).capitalize()
            ),
            quantity=quantity,
            remaining_quantity=remaining,
            pricing_type=PricingType(
                safe_str(row.get("pricing_type"), default=PricingType.FIXED.value).capitalize()
            ),
            signed_price=safe_decimal(row.get("signed_price")),
            reference_price=safe_decimal(row.get("reference_price")),
            payable_percent=safe_decimal(row.get("payable_percent")),
            premium_discount=safe_decimal(row.get("premium_discount")),
            incoterms=safe_str(row.get("incoterms")),
            ship_from=safe_str(row.get("ship_from")),
            ship_to=safe_str(row.get("ship_to")),
            metal_form=safe_str(row.get("metal_form")),
            isri_grade=safe_str(row.get("isri_grade")),
            client_name=safe_str(row.get("client_name")),
        )


class HedgeFactory(_RecordFactory[HedgeExecution]):
    """Builds HedgeExecution records.

    Status is derived from open vs. trade quantity unless the row carries one.
    ``source_level``/``source_id`` give the physical reference the hedge was
    requested for.
    """

    record_name = "hedge"
    required_fields = ["id", "direction", "commodity", "quantity", "executed_price"]
    column_aliases = {
        "hedge_execution_id": "id",
        "commodity_type": "commodity",
        "quantity_mt": "quantity",
        "open_quantity_mt": "open_quantity",
        "broker_name": "broker",
        "execution_date": "executed_at",
    }
    json_field_mappings = {
        "hedgeExecutionId": "id",
        "commodityType": "commodity",
        "quantityMt": "quantity",
        "openQuantity": "open_quantity",
        "openQuantityMt": "open_quantity",
        "executedPrice": "executed_price",
        "brokerName": "broker",
        "executedAt": "executed_at",
        "executionDate": "executed_at",
        "sourceLevel": "source_level",
        "sourceId": "source_id",
    }

    def _create_record(self, row: pd.Series) -> HedgeExecution:
        quantity = safe_decimal(self._required(row, "quantity"))
        executed_price = safe_decimal(self._required(row, "executed_price"))
        if quantity is None or executed_price is None:
            raise ValueError("Invalid quantity or executed price")
        open_quantity = safe_decimal(row.get("open_quantity"), default=quantity)

        status = derive_hedge_status(open_quantity, quantity)
        raw_status = safe_str(row.get("status"))
        if raw_status and parse_hedge_status(raw_status) != status:
            raise ValueError(
                f"Status '{raw_status}' inconsistent with open quantity {open_quantity}/{quantity}"
            )

        source_ref = None
        source_level = safe_str(row.get("source_level"))
        source_id = safe_str(row.get("source_id"))
        if source_level and source_id:
            source_ref = make_ref(source_level, source_id)

        return HedgeExecution(
            id=safe_str(self._required(row, "id")),
            direction=HedgeDirection(safe_str(self._required(row, "direction")).capitalize()),
            commodity=safe_str(self._required(row, "commodity")),
            quantity=quantity,
            open_quantity=open_quantity,
            executed_price=executed_price,
            broker=safe_str(row.get("broker")),
            executed_at=self._parse_datetime(row.get("executed_at")),
            status=status,
            source_ref=source_ref,
        )

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        text = safe_str(value)
        if text is None:
            return None
        return pd.Timestamp(text).to_pydatetime()


class ShipmentFactory(_RecordFactory[Shipment]):
    """Builds Shipment records (``bl_order_id``/``order_id`` export names accepted)."""

    record_name = "shipment"
    required_fields = ["id", "order_id", "quantity"]
    column_aliases = {
        "bl_order_id": "id",
        "shipment_id": "id",
        "quantity_mt": "quantity",
        "bl_number": "name",
    }
    json_field_mappings = {
        "shipmentId": "id",
        "orderId": "order_id",
        "quantityMt": "quantity",
        "blNumber": "name",
    }

    def _create_record(self, row: pd.Series) -> Shipment:
        shipment_id = safe_int(self._required(row, "id"))
        quantity = safe_decimal(self._required(row, "quantity"))
        if shipment_id is None or quantity is None:
            raise ValueError("Invalid shipment id or quantity")
        return Shipment(
            id=shipment_id,
            order_id=safe_str(self._required(row, "order_id")),
            quantity=quantity,
            name=safe_str(row.get("name")),
        )
