"""
Auto-posting hooks: persist journal entries for business events as they
happen (expense approved, invoice issued or paid, payroll completed).

Each hook is idempotent per ``(reference_type, reference_id)`` and skips
non-positive amounts. Account selection goes through the same posting rules
as the derived ledger.
"""

import logging
from datetime import date

from ledger_core.application.journal_entries import JournalEntryService
from ledger_core.domain import chart as coa
from ledger_core.domain.chart import ChartOfAccounts, default_chart
from ledger_core.domain.entities import Expense, Invoice, Payroll
from ledger_core.domain.services import PostingRules
from ledger_core.domain.value_objects import ZERO, JournalLineInput, ReferenceType, to_decimal
from ledger_core.infrastructure.database.models import JournalEntry

logger = logging.getLogger(__name__)


class AutoJournalService:

    def __init__(self, journal_entries: JournalEntryService, chart: ChartOfAccounts | None = None):
        self.journal_entries = journal_entries
        self.rules = PostingRules(chart or default_chart())

    def post_expense(self, expense: Expense, user_id: str) -> JournalEntry | None:
        amount = to_decimal(expense.amount)
        if amount <= ZERO:
            return None
        debit_account, credit_account = self.rules.for_expense(expense)
        return self._post(
            org_id=expense.org_id,
            entry_date=expense.date,
            description=f"Expense: {expense.description or ''}".strip(),
            reference_type=ReferenceType.EXPENSE,
            reference_id=expense.id,
            user_id=user_id,
            lines=[
                JournalLineInput(debit_account, debit_amount=amount, description=expense.description or None),
                JournalLineInput(credit_account, credit_amount=amount, description="To be paid"),
            ],
        )

    def post_invoice(self, invoice: Invoice, user_id: str) -> JournalEntry | None:
        total = to_decimal(invoice.total)
        if total <= ZERO:
            return None
        label = f"Invoice {invoice.invoice_number}".strip()
        return self._post(
            org_id=invoice.org_id,
            entry_date=invoice.due_date,
            description=label,
            reference_type=ReferenceType.INVOICE,
            reference_id=invoice.id,
            user_id=user_id,
            lines=[
                JournalLineInput(coa.ACCOUNTS_RECEIVABLE, debit_amount=total, description=label),
                JournalLineInput(
                    self.rules.revenue_account(invoice), credit_amount=total, description="Revenue recognized"
                ),
            ],
        )

    def post_invoice_payment(self, invoice: Invoice, user_id: str) -> JournalEntry | None:
        """Cash receipt against an invoice, dated by its payment date (today if unset)."""
        total = to_decimal(invoice.total)
        if total <= ZERO:
            return None
        label = f"Invoice {invoice.invoice_number}".strip()
        return self._post(
            org_id=invoice.org_id,
            entry_date=invoice.payment_date or date.today(),
            description=f"Payment received: {label}",
            reference_type=ReferenceType.INVOICE_PAYMENT,
            reference_id=invoice.id,
            user_id=user_id,
            lines=[
                JournalLineInput(coa.BANK_OPERATING, debit_amount=total, description="Payment received"),
                JournalLineInput(
                    coa.ACCOUNTS_RECEIVABLE, credit_amount=total, description=f"Payment for {label}"
                ),
            ],
        )

    def post_payroll(self, payroll: Payroll, user_id: str) -> JournalEntry | None:
        total = to_decimal(payroll.total_amount)
        if total <= ZERO:
            return None
        return self._post(
            org_id=payroll.org_id,
            entry_date=payroll.pay_date,
            description=(
                f"Payroll {payroll.period_start.isoformat()} to {payroll.period_end.isoformat()}"
            ),
            reference_type=ReferenceType.PAYROLL,
            reference_id=payroll.id,
            user_id=user_id,
            lines=[
                JournalLineInput(coa.PAYROLL_WAGES, debit_amount=total, description="Gross payroll"),
                JournalLineInput(coa.PAYROLL_LIABILITIES, credit_amount=total, description="Payroll liabilities"),
            ],
        )

    def _post(
        self,
        org_id: str,
        entry_date: date,
        description: str,
        reference_type: ReferenceType,
        reference_id: str,
        user_id: str,
        lines: list[JournalLineInput],
    ) -> JournalEntry | None:
        entry = self.journal_entries.create_journal_entry(
            org_id=org_id,
            entry_date=entry_date,
            description=description,
            lines=lines,
            created_by=user_id,
            reference_type=reference_type.value,
            reference_id=reference_id,
            skip_if_referenced=True,
        )
        if entry is None:
            logger.debug("Auto-posting skipped for %s %s", reference_type.value, reference_id)
        return entry
