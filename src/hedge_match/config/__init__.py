"""Configuration management for the matching engine."""

from .config_manager import MatchingConfigManager, MatchingConfig

__all__ = ["MatchingConfigManager", "MatchingConfig"]
