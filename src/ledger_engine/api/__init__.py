"""HTTP API for the ledger engine."""
