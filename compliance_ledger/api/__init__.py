"""HTTP API for the compliance ledger."""
