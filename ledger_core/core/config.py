"""
Application configuration loaded from environment variables.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import ImportString
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ledger settings, read from ``LEDGER_*`` variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./data/ledger.db"
    sql_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    # Posting rules
    balance_tolerance: Decimal = Decimal("0.01")
    enforce_period_lock: bool = False
    default_page_limit: int = 100

    # Month-end checks
    receipt_threshold: Decimal = Decimal("75")
    large_expense_threshold: Decimal = Decimal("1000")
    spending_change_threshold_pct: Decimal = Decimal("30")
    expected_payroll_runs: int = 2

    # Anchoring
    anchoring_enabled: bool = False
    anchoring_client: ImportString | None = None  # e.g. "mypkg.chain.ChainAnchoringClient"
    anchoring_workers: int = 2


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
