"""Ticket matching algorithms."""

from .base_matcher import BaseTicketMatcher
from .greedy_matcher import GreedyTicketMatcher

__all__ = [
    "BaseTicketMatcher",
    "GreedyTicketMatcher",
]
