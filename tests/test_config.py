"""Tests for matching configuration loading."""
import json
from decimal import Decimal

import pytest

from hedge_match.config import MatchingConfigManager
from hedge_match.pricing import PricingPolicy


def _write_config(directory, **changes):
    data = {
        "commodities": ["Copper", "Zinc"],
        "pricing": {"policy": "strict"},
        "exposure": {"flat_epsilon": "0.5"},
        "fixing": {"default_currency": "EUR"},
        "orders": {"id_min": 100, "id_max": 999},
    }
    data.update(changes)
    (directory / "matching_config.json").write_text(json.dumps(data), encoding="utf-8")
    return data


def test_packaged_defaults():
    manager = MatchingConfigManager()

    assert manager.get_pricing_policy() == PricingPolicy.LENIENT
    assert manager.get_flat_epsilon() == Decimal("0.01")
    assert manager.get_default_currency() == "USD"
    assert manager.get_order_id_range() == (10000, 99999)
    assert "Copper" in manager.get_commodities()
    assert manager.matching_config.payable_percent_threshold == Decimal("1.5")


def test_commodity_lookup_is_case_insensitive():
    manager = MatchingConfigManager()
    assert manager.is_known_commodity("copper")
    assert manager.is_known_commodity("ALUMINIUM")
    assert not manager.is_known_commodity("Unobtainium")


def test_empty_commodity_list_accepts_anything(tmp_path):
    _write_config(tmp_path, commodities=[])
    assert MatchingConfigManager(tmp_path).is_known_commodity("Unobtainium")


def test_custom_file(tmp_path):
    _write_config(tmp_path)
    manager = MatchingConfigManager(tmp_path)

    assert manager.get_pricing_policy() == PricingPolicy.STRICT
    assert manager.get_flat_epsilon() == Decimal("0.5")
    assert manager.get_default_currency() == "EUR"
    assert manager.get_order_id_range() == (100, 999)
    assert manager.matching_config.order_id_attempts == 5
    assert manager.matching_config.transaction_type == "B2B"


def test_overrides_replace_file_values():
    manager = MatchingConfigManager(pricing_policy=PricingPolicy.STRICT, flat_epsilon=Decimal("1"))
    assert manager.get_pricing_policy() == PricingPolicy.STRICT
    assert manager.get_flat_epsilon() == Decimal("1")


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        MatchingConfigManager(tmp_path)


def test_invalid_json(tmp_path):
    (tmp_path / "matching_config.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid JSON"):
        MatchingConfigManager(tmp_path)


def test_missing_section(tmp_path):
    data = _write_config(tmp_path)
    del data["exposure"]
    (tmp_path / "matching_config.json").write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ValueError, match="exposure"):
        MatchingConfigManager(tmp_path)


def test_inverted_order_id_range(tmp_path):
    _write_config(tmp_path, orders={"id_min": 999, "id_max": 100})
    with pytest.raises(ValueError):
        MatchingConfigManager(tmp_path)


def test_reload_picks_up_changes(tmp_path):
    _write_config(tmp_path)
    manager = MatchingConfigManager(tmp_path)
    _write_config(tmp_path, fixing={"default_currency": "GBP"})

    manager.reload_config()

    assert manager.get_default_currency() == "GBP"
