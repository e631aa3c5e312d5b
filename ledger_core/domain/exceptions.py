"""
Domain exceptions. Every error carries a machine-readable ``code``.
"""

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base class for ledger core errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Malformed input, rejected before anything is persisted."""

    code = "VALIDATION_ERROR"


class UnbalancedEntryError(LedgerError):
    code = "UNBALANCED_ENTRY"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__(
            f"Journal entry does not balance: debits {total_debit} != credits {total_credit}",
            details={"total_debit": str(total_debit), "total_credit": str(total_credit)},
        )
        self.total_debit = total_debit
        self.total_credit = total_credit


class UnknownAccountError(LedgerError):
    code = "UNKNOWN_ACCOUNT"

    def __init__(self, account_code: str):
        super().__init__(f"Account {account_code} not found in chart of accounts")
        self.account_code = account_code


class NotFoundError(LedgerError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str | None = None):
        message = f"{entity} with id {entity_id} not found" if entity_id else f"{entity} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConcurrencyError(LedgerError):
    """Entry number collision that survived the internal retry."""

    code = "CONCURRENCY_CONFLICT"


class PeriodNotReadyError(LedgerError):
    code = "PERIOD_NOT_READY"

    def __init__(self, year: int, month: int, failed: int, checks: list | None = None):
        super().__init__(
            f"Cannot close period {year}-{month:02d}: {failed} check(s) failed",
            details=checks,
        )
        self.year = year
        self.month = month
        self.checks = checks or []


class PeriodClosedError(LedgerError):
    code = "PERIOD_CLOSED"


class AnchoringError(LedgerError):
    """Recoverable failure of the external anchoring collaborator."""

    code = "ANCHORING_FAILED"
