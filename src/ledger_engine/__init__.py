"""Multi-tenant double-entry ledger engine."""

__version__ = "0.1.0"
