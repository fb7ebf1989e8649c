"""Compliance decision ledger and enterprise audit aggregation."""

__version__ = "1.0.0"
