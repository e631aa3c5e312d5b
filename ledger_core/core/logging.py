"""
Logging setup for the ledger service.
"""

import logging

from ledger_core.core.config import Settings

_configured = False


def configure_logging(settings: Settings) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )
    if not settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
