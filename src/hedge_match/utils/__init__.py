"""Shared helpers."""

from .type_coercion import is_blank, safe_decimal, safe_int, safe_str

__all__ = ["is_blank", "safe_decimal", "safe_int", "safe_str"]
