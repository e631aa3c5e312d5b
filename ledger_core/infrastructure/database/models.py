"""
Infrastructure - SQLModel database models and configurations.
"""

import datetime as dt
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, UniqueConstraint, text
from sqlmodel import Field, Relationship, SQLModel

from ledger_core.core.config import Settings, get_settings


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, as stored by every table."""
    return datetime.now(timezone.utc)


def timestamp(**kwargs: Any) -> Any:
    """Field for a timezone-aware timestamp column."""
    return Field(sa_type=DateTime(timezone=True), **kwargs)


class ChartOfAccountsEntry(SQLModel, table=True):
    """Organisation-specific chart of accounts row."""

    __tablename__ = "chart_of_accounts"
    __table_args__ = (UniqueConstraint("org_id", "account_code", name="uq_chart_org_code"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    account_code: str
    account_name: str
    account_type: str  # asset, liability, equity, income, expense, cogs
    is_active: bool = True
    created_at: datetime = timestamp(default_factory=utcnow)


class JournalEntry(SQLModel, table=True):
    """Persisted, numbered journal entry. Posted -> voided is the only transition."""

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("org_id", "entry_number", name="uq_journal_entries_org_number"),
        # At most one posted entry per source record.
        Index(
            "uq_journal_entries_posted_reference",
            "org_id",
            "reference_type",
            "reference_id",
            unique=True,
            sqlite_where=text("status = 'posted'"),
            postgresql_where=text("status = 'posted'"),
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    entry_number: str = Field(index=True)  # JE-2025-0001
    entry_date: date = Field(index=True)
    description: str
    reference_type: str | None = Field(default=None, index=True)
    reference_id: str | None = Field(default=None, index=True)
    status: str = "posted"  # posted, voided

    created_by: str | None = None
    voided_by: str | None = None
    voided_at: datetime | None = timestamp(default=None)
    void_reason: str | None = None

    anchor_hash: str | None = None
    anchor_status: str | None = None  # pending, anchored, failed
    anchor_tx_ref: str | None = None
    anchor_height: int | None = None
    anchored_at: datetime | None = timestamp(default=None)

    created_at: datetime = timestamp(default_factory=utcnow)
    updated_at: datetime = timestamp(default_factory=utcnow)

    lines: list["JournalEntryLine"] = Relationship(
        back_populates="journal_entry",
        sa_relationship_kwargs={
            "order_by": "JournalEntryLine.line_number",
            "cascade": "all, delete-orphan",
        },
    )

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))


class JournalEntryLine(SQLModel, table=True):
    __tablename__ = "journal_entry_lines"

    id: str = Field(default_factory=new_id, primary_key=True)
    journal_entry_id: str = Field(foreign_key="journal_entries.id", index=True)
    line_number: int
    account_code: str = Field(index=True)
    account_name: str  # snapshot at posting time
    debit_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    credit_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    description: str | None = None

    journal_entry: JournalEntry | None = Relationship(back_populates="lines")


class AccountingPeriod(SQLModel, table=True):
    """Monthly accounting period and its close/reopen state."""

    __tablename__ = "accounting_periods"
    __table_args__ = (
        UniqueConstraint("org_id", "year", "month", "period_type", name="uq_accounting_periods_org_month"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    year: int
    month: int
    period_type: str = "month"
    start_date: date
    end_date: date
    status: str = "open"  # open, closed

    closed_by: str | None = None
    closed_at: datetime | None = timestamp(default=None)
    forced_close: bool = False
    reopened_by: str | None = None
    reopened_at: datetime | None = timestamp(default=None)
    reopen_reason: str | None = None
    final_balances: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    anchor_hash: str | None = None
    anchor_status: str | None = None
    anchor_tx_ref: str | None = None

    created_at: datetime = timestamp(default_factory=utcnow)
    updated_at: datetime = timestamp(default_factory=utcnow)

    checks: list["PeriodCloseCheck"] = Relationship(
        back_populates="period",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class PeriodCloseCheck(SQLModel, table=True):
    """Outcome of one month-end check, recorded when a period is closed."""

    __tablename__ = "period_close_checks"

    id: str = Field(default_factory=new_id, primary_key=True)
    period_id: str = Field(foreign_key="accounting_periods.id", index=True)
    check_type: str
    status: str
    severity: str
    message: str
    details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = timestamp(default_factory=utcnow, index=True)

    period: AccountingPeriod | None = Relationship(back_populates="checks")


class AuditLog(SQLModel, table=True):
    """Audit trail for every ledger mutation."""

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str | None = Field(default=None, index=True)
    user_id: str | None = Field(default=None, index=True)
    action: str = Field(index=True)  # CREATE, VOID, CLOSE, REOPEN

    entity_type: str  # journal_entry, accounting_period
    entity_id: str

    old_value: str | None = None  # JSON
    new_value: str | None = None  # JSON

    created_at: datetime = timestamp(default_factory=utcnow, index=True)


# Source records. Owned by other subsystems; the ledger only reads them.


class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    name: str
    created_at: datetime = timestamp(default_factory=utcnow)


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    category: str = "other"
    date: dt.date = Field(index=True)
    status: str = "pending"  # pending, approved, voided
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    description: str = ""
    production_batch_id: str | None = None
    receipt_url: str | None = None
    needs_review: bool = False  # set by the expenses subsystem
    created_at: datetime = timestamp(default_factory=utcnow)


class Invoice(SQLModel, table=True):
    __tablename__ = "invoices"

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    customer_id: str = Field(index=True)
    invoice_number: str = ""
    total: Decimal = Field(max_digits=18, decimal_places=2)
    due_date: date = Field(index=True)
    status: str = "draft"  # draft, sent, paid, void
    payment_date: date | None = None
    created_at: datetime = timestamp(default_factory=utcnow)

    line_items: list["InvoiceLineItem"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class InvoiceLineItem(SQLModel, table=True):
    __tablename__ = "invoice_line_items"

    id: str = Field(default_factory=new_id, primary_key=True)
    invoice_id: str = Field(foreign_key="invoices.id", index=True)
    description: str = ""
    amount: Decimal | None = Field(default=None, max_digits=18, decimal_places=2)

    invoice: Invoice | None = Relationship(back_populates="line_items")


class Payroll(SQLModel, table=True):
    __tablename__ = "payrolls"

    id: str = Field(default_factory=new_id, primary_key=True)
    org_id: str = Field(index=True)
    total_amount: Decimal = Field(max_digits=18, decimal_places=2)
    period_start: date
    period_end: date
    pay_date: date = Field(index=True)
    status: str = "completed"  # draft, completed
    created_at: datetime = timestamp(default_factory=utcnow)


def get_engine_url(settings: Settings | None = None) -> str:
    """Database URL from settings."""
    settings = settings or get_settings()
    url = settings.database_url
    if not url.startswith(("sqlite", "postgresql")):
        raise ValueError(f"Unsupported database URL: {url}")
    return url
