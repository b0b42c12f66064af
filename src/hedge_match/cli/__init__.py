from .display import MatchingDisplay

__all__ = ["MatchingDisplay"]
