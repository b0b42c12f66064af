"""Physical ticket matching and hedge price fixing engine."""

__version__ = "0.1.0"
