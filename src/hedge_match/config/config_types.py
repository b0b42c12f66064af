"""TypedDict classes for the JSON configuration file."""

from typing import TypedDict
from typing_extensions import NotRequired


class PricingSection(TypedDict):
    policy: str  # "lenient" or "strict"
    payable_percent_threshold: NotRequired[str]


class ExposureSection(TypedDict):
    flat_epsilon: str


class FixingSection(TypedDict):
    default_currency: str


class OrdersSection(TypedDict):
    id_min: int
    id_max: int
    id_attempts: NotRequired[int]
    status: NotRequired[str]
    transaction_type: NotRequired[str]


class MatchingConfigFile(TypedDict):
    """Top-level structure of matching_config.json."""

    commodities: list[str]
    pricing: PricingSection
    exposure: ExposureSection
    fixing: FixingSection
    orders: OrdersSection
    quantity_unit: NotRequired[str]
