"""
Infrastructure - SQL implementations of the domain repository interfaces.

Rows are converted to domain entities at this boundary so the deriver and
report engine never see ORM objects.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import inspect
from sqlalchemy.orm import Session, selectinload

from ledger_core.domain import entities
from ledger_core.domain.services import (
    ICustomerRepository,
    IExpenseRepository,
    IInvoiceRepository,
    IPayrollRepository,
)
from ledger_core.infrastructure.database.models import (
    AccountingPeriod,
    ChartOfAccountsEntry,
    Customer,
    Expense,
    Invoice,
    Payroll,
)

logger = logging.getLogger(__name__)


def _expense(row: Expense) -> entities.Expense:
    return entities.Expense(
        id=row.id,
        org_id=row.org_id,
        amount=row.amount,
        category=row.category,
        date=row.date,
        status=row.status,
        tags=list(row.tags or []),
        description=row.description or "",
        production_batch_id=row.production_batch_id,
        receipt_url=row.receipt_url,
        needs_review=bool(row.needs_review),
    )


def _invoice(row: Invoice) -> entities.Invoice:
    return entities.Invoice(
        id=row.id,
        org_id=row.org_id,
        total=row.total,
        due_date=row.due_date,
        status=row.status,
        customer_id=row.customer_id,
        invoice_number=row.invoice_number or "",
        line_items=[
            entities.InvoiceLineItem(description=item.description, amount=item.amount)
            for item in row.line_items
        ],
        payment_date=row.payment_date,
    )


def _payroll(row: Payroll) -> entities.Payroll:
    return entities.Payroll(
        id=row.id,
        org_id=row.org_id,
        total_amount=row.total_amount,
        period_start=row.period_start,
        period_end=row.period_end,
        pay_date=row.pay_date,
        status=row.status,
    )


class SqlExpenseRepository(IExpenseRepository):

    def __init__(self, db: Session):
        self.db = db

    def list_by_date(self, org_id: str, start_date: date, end_date: date) -> list[entities.Expense]:
        rows = (
            self.db.query(Expense)
            .filter(
                Expense.org_id == org_id,
                Expense.status != "voided",
                Expense.date >= start_date,
                Expense.date <= end_date,
            )
            .order_by(Expense.date, Expense.created_at)
            .all()
        )
        return [_expense(row) for row in rows]

    def list_active(self, org_id: str) -> list[entities.Expense]:
        rows = (
            self.db.query(Expense)
            .filter(Expense.org_id == org_id, Expense.status != "voided")
            .order_by(Expense.date)
            .all()
        )
        return [_expense(row) for row in rows]


class SqlInvoiceRepository(IInvoiceRepository):

    def __init__(self, db: Session):
        self.db = db

    def list_by_due_date(self, org_id: str, start_date: date, end_date: date) -> list[entities.Invoice]:
        rows = (
            self.db.query(Invoice)
            .options(selectinload(Invoice.line_items))
            .filter(
                Invoice.org_id == org_id,
                Invoice.due_date >= start_date,
                Invoice.due_date <= end_date,
            )
            .order_by(Invoice.due_date, Invoice.created_at)
            .all()
        )
        return [_invoice(row) for row in rows]

    def list_open(self, org_id: str) -> list[entities.Invoice]:
        rows = (
            self.db.query(Invoice)
            .options(selectinload(Invoice.line_items))
            .filter(Invoice.org_id == org_id, Invoice.status.in_(("draft", "sent")))
            .order_by(Invoice.due_date)
            .all()
        )
        return [_invoice(row) for row in rows]


class SqlPayrollRepository(IPayrollRepository):

    def __init__(self, db: Session):
        self.db = db

    def list_by_pay_date(self, org_id: str, start_date: date, end_date: date) -> list[entities.Payroll]:
        rows = (
            self.db.query(Payroll)
            .filter(
                Payroll.org_id == org_id,
                Payroll.pay_date >= start_date,
                Payroll.pay_date <= end_date,
            )
            .order_by(Payroll.pay_date, Payroll.created_at)
            .all()
        )
        return [_payroll(row) for row in rows]


class SqlCustomerRepository(ICustomerRepository):

    def __init__(self, db: Session):
        self.db = db

    def get_by_ids(self, org_id: str, customer_ids: Iterable[str]) -> dict[str, entities.Customer]:
        ids = list(set(customer_ids))
        if not ids:
            return {}
        rows = self.db.query(Customer).filter(Customer.org_id == org_id, Customer.id.in_(ids)).all()
        return {row.id: entities.Customer(id=row.id, org_id=row.org_id, name=row.name) for row in rows}


@dataclass(frozen=True)
class ChartLookup:
    """
    Result of reading an organisation's dynamic chart.

    ``schema_present`` is False when the chart table does not exist at all,
    which is distinct from an existing table with no rows for the org.
    """
    schema_present: bool
    names: dict[str, str] = field(default_factory=dict)

    def name_for(self, code: str) -> str | None:
        return self.names.get(code)


class OrgChartRepository:
    """Reads active rows of the organisation-specific chart of accounts."""

    def __init__(self, db: Session):
        self.db = db

    def lookup(self, org_id: str, account_codes: Iterable[str]) -> ChartLookup:
        codes = list(set(account_codes))
        if not inspect(self.db.get_bind()).has_table(ChartOfAccountsEntry.__tablename__):
            logger.debug("Chart of accounts table not present; using static chart")
            return ChartLookup(schema_present=False)
        rows = (
            self.db.query(ChartOfAccountsEntry)
            .filter(
                ChartOfAccountsEntry.org_id == org_id,
                ChartOfAccountsEntry.account_code.in_(codes),
                ChartOfAccountsEntry.is_active.is_(True),
            )
            .all()
        )
        return ChartLookup(
            schema_present=True,
            names={row.account_code: row.account_name for row in rows},
        )


class AccountingPeriodRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(self, org_id: str, year: int, month: int) -> AccountingPeriod | None:
        return (
            self.db.query(AccountingPeriod)
            .filter(
                AccountingPeriod.org_id == org_id,
                AccountingPeriod.year == year,
                AccountingPeriod.month == month,
                AccountingPeriod.period_type == "month",
            )
            .one_or_none()
        )

    def is_closed(self, org_id: str, on: date) -> bool:
        """True when the month containing ``on`` has been closed. Absent periods are open."""
        period = self.get(org_id, on.year, on.month)
        return period is not None and period.status == "closed"
