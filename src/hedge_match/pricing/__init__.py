"""Ticket pricing."""

from .calculator import PricingCalculator, PricingPolicy, PriceQuote

__all__ = ["PricingCalculator", "PricingPolicy", "PriceQuote"]
