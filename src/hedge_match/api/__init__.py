"""HTTP API for the matching engine."""
