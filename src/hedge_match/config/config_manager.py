"""Configuration manager for the ticket matching and price fixing engine."""

import json
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..pricing.calculator import PricingPolicy
from .config_types import MatchingConfigFile


class MatchingConfig(BaseModel):
    """Runtime settings for matching, pricing, fixing and exposure.

    Built from matching_config.json; immutable once loaded.
    """

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
    )

    commodities: list[str] = Field(
        default_factory=list, description="Commodity types accepted by the optimizer"
    )
    pricing_policy: PricingPolicy = Field(
        default=PricingPolicy.LENIENT,
        description="lenient: unpriceable tickets price at 0; strict: they are rejected",
    )
    payable_percent_threshold: Decimal = Field(
        default=Decimal("1.5"),
        description="Payable values above this are percentages and divided by 100",
    )
    flat_epsilon: Decimal = Field(
        default=Decimal("0.01"), gt=0, description="Net exposure below this is Flat"
    )
    default_currency: str = Field(default="USD", min_length=3, max_length=3)
    order_id_min: int = Field(default=10000, ge=0)
    order_id_max: int = Field(default=99999, ge=1)
    order_id_attempts: int = Field(
        default=5, ge=1, description="Id regenerations allowed on collision"
    )
    order_status: str = Field(default="Allocated")
    transaction_type: str = Field(default="B2B")
    quantity_unit: str = Field(default="MT")


class MatchingConfigManager:
    """Loads matching configuration from JSON and exposes typed accessors."""

    def __init__(self, config_path: Optional[Path] = None, **overrides):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config directory. Defaults to this module's dir.
            **overrides: MatchingConfig fields that replace values from the file
        """
        if config_path is None:
            config_path = Path(__file__).parent

        self.config_path = config_path
        self.matching_config_path = config_path / "matching_config.json"
        self._overrides = overrides

        self._load_matching_config()

    def _load_matching_config(self) -> None:
        """Load and validate matching configuration from JSON file."""
        try:
            with open(self.matching_config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise FileNotFoundError(
                f"Matching config not found at {self.matching_config_path}"
            ) from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in matching config: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Matching config must be a dictionary")
        for section in ("commodities", "pricing", "exposure", "fixing", "orders"):
            if section not in data:
                raise ValueError(f"Matching config missing section: {section}")

        self.raw_config: MatchingConfigFile = data  # type: ignore[assignment]
        self.matching_config = self._build_config(self.raw_config)

    def _build_config(self, raw: MatchingConfigFile) -> MatchingConfig:
        orders = raw["orders"]
        values = {
            "commodities": list(raw["commodities"]),
            "pricing_policy": PricingPolicy(raw["pricing"]["policy"]),
            "payable_percent_threshold": Decimal(
                raw["pricing"].get("payable_percent_threshold", "1.5")
            ),
            "flat_epsilon": Decimal(raw["exposure"]["flat_epsilon"]),
            "default_currency": raw["fixing"]["default_currency"],
            "order_id_min": orders["id_min"],
            "order_id_max": orders["id_max"],
            "order_id_attempts": orders.get("id_attempts", 5),
            "order_status": orders.get("status", "Allocated"),
            "transaction_type": orders.get("transaction_type", "B2B"),
            "quantity_unit": raw.get("quantity_unit", "MT"),
        }
        values.update(self._overrides)
        config = MatchingConfig(**values)
        if config.order_id_min >= config.order_id_max:
            raise ValueError("orders.id_min must be below orders.id_max")
        return config

    def get_commodities(self) -> list[str]:
        """Get the list of commodity types the engine accepts."""
        return list(self.matching_config.commodities)

    def is_known_commodity(self, commodity: str) -> bool:
        """Check a commodity against the configured list (case-insensitive).

        An empty configured list accepts any commodity.
        """
        if not self.matching_config.commodities:
            return True
        return commodity.lower() in {c.lower() for c in self.matching_config.commodities}

    def get_pricing_policy(self) -> PricingPolicy:
        return self.matching_config.pricing_policy

    def get_flat_epsilon(self) -> Decimal:
        return self.matching_config.flat_epsilon

    def get_default_currency(self) -> str:
        return self.matching_config.default_currency

    def get_order_id_range(self) -> tuple[int, int]:
        """Get the inclusive range for generated numeric order ids."""
        return self.matching_config.order_id_min, self.matching_config.order_id_max

    def reload_config(self) -> None:
        """Reload configuration from files.

        Useful for development and testing when config files change.
        """
        self._load_matching_config()
