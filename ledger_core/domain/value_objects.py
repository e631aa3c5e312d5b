"""
Domain Layer - value objects and enumerations of the ledger core.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import NewType

AccountCode = NewType("AccountCode", str)

ZERO = Decimal("0")
CENT = Decimal("0.01")


class AccountType(str, Enum):
    """Account classification; fixes the normal balance side."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"
    COGS = "cogs"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE, AccountType.COGS})
PROFIT_AND_LOSS_TYPES = frozenset({AccountType.INCOME, AccountType.EXPENSE, AccountType.COGS})


class Basis(str, Enum):
    """Recognition basis for derived ledgers."""
    ACCRUAL = "accrual"
    CASH = "cash"


class SourceType(str, Enum):
    """Origin of a derived journal line."""
    EXPENSE = "expense"
    INVOICE = "invoice"
    PAYROLL = "payroll"


class ReferenceType(str, Enum):
    """Business transaction a persisted journal entry refers back to."""
    EXPENSE = "expense"
    INVOICE = "invoice"
    INVOICE_PAYMENT = "invoice_payment"
    PAYROLL = "payroll"
    MANUAL = "manual"


class EntryStatus(str, Enum):
    POSTED = "posted"
    VOIDED = "voided"


class AnchorStatus(str, Enum):
    PENDING = "pending"
    ANCHORED = "anchored"
    FAILED = "failed"


class PeriodStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class CheckStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    WARNING = "warning"
    INFO = "info"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a numeric value to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round to cents. Applied at report boundaries only."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class JournalLine:
    """Derived ledger line. Computed per request, never persisted."""
    date: date
    account_code: AccountCode
    debit: Decimal
    credit: Decimal
    description: str
    source_type: SourceType
    source_id: str


@dataclass(frozen=True, slots=True)
class JournalLineInput:
    """One requested line of a journal entry to be persisted."""
    account_code: str
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: str | None = None
