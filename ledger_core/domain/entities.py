"""
Domain Entities - accounts and the inbound business records the ledger reads.

Source records (expenses, invoices, payroll runs) are owned and stored by
other subsystems; the ledger core only reads them.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .value_objects import DEBIT_NORMAL_TYPES, AccountCode, AccountType


@dataclass(frozen=True)
class Account:
    """
    Entity - Chart of accounts entry.
    The type fixes the normal side of the balance.
    """
    code: AccountCode
    name: str
    type: AccountType
    group: str

    @property
    def is_debit_normal(self) -> bool:
        return self.type in DEBIT_NORMAL_TYPES

    def signed_balance(self, debit: Decimal, credit: Decimal) -> Decimal:
        """Balance in the account's natural direction."""
        if self.is_debit_normal:
            return debit - credit
        return credit - debit


@dataclass
class Expense:
    id: str
    org_id: str
    amount: Decimal
    category: str
    date: date
    status: str = "pending"
    tags: list[str] = field(default_factory=list)
    description: str = ""
    production_batch_id: str | None = None
    receipt_url: str | None = None
    needs_review: bool = False

    @property
    def is_voided(self) -> bool:
        return self.status == "voided"


@dataclass
class InvoiceLineItem:
    description: str
    amount: Decimal | None = None


@dataclass
class Invoice:
    id: str
    org_id: str
    total: Decimal
    due_date: date
    status: str
    customer_id: str
    invoice_number: str = ""
    line_items: list[InvoiceLineItem] = field(default_factory=list)
    payment_date: date | None = None

    @property
    def is_open(self) -> bool:
        """Unpaid: still draft or sent."""
        return self.status in ("draft", "sent")


@dataclass
class Payroll:
    id: str
    org_id: str
    total_amount: Decimal
    period_start: date
    period_end: date
    pay_date: date
    status: str = "completed"


@dataclass
class Customer:
    id: str
    org_id: str
    name: str
