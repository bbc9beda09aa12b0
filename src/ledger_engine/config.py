"""Configuration management for the ledger engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str
    invoice_number_prefix: str

    @property
    def HOST(self) -> str:
        """Alias for host."""
        return self.host

    @property
    def PORT(self) -> int:
        """Alias for port."""
        return self.port

    @property
    def DEBUG(self) -> bool:
        """Alias for debug."""
        return self.debug

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite:///./ledger_engine.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            invoice_number_prefix=os.getenv("INVOICE_NUMBER_PREFIX", "INV"),
        )


@dataclass(frozen=True)
class LedgerConfig:
    """
    Posting behaviour that must be explicit rather than inferred.

    Attributes:
        invoice_number_prefix: Prefix for generated invoice numbers.
        invoice_number_width: Zero-padded width of the numeric part.
        cash_methods: Payment methods that settle through the Cash account.
            Every other method settles through Bank.
    """

    invoice_number_prefix: str = "INV"
    invoice_number_width: int = 6
    cash_methods: frozenset[str] = frozenset({"cash"})

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.invoice_number_prefix:
            raise ValueError("invoice_number_prefix is required")
        if not 1 <= self.invoice_number_width <= 12:
            raise ValueError("invoice_number_width must be between 1 and 12")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for API and CLI entry points."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


settings = get_settings()
