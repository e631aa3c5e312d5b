"""
Journal line derivation.

The derived ledger is recomputed from the source records on every call; it
holds no state and never writes anything. Each qualifying event yields one
balanced debit/credit pair.
"""

from datetime import date
from decimal import Decimal

from . import chart as coa
from .chart import ChartOfAccounts
from .entities import Expense, Invoice, Payroll
from .services import IExpenseRepository, IInvoiceRepository, IPayrollRepository, PostingRules
from .value_objects import ZERO, AccountCode, Basis, JournalLine, SourceType, to_decimal


class JournalLineDeriver:

    def __init__(
        self,
        expenses: IExpenseRepository,
        invoices: IInvoiceRepository,
        payrolls: IPayrollRepository,
        chart: ChartOfAccounts,
    ):
        self.expenses = expenses
        self.invoices = invoices
        self.payrolls = payrolls
        self.chart = chart
        self.rules = PostingRules(chart)

    def build_journal_lines(
        self,
        org_id: str,
        from_date: date,
        to_date: date,
        basis: Basis = Basis.ACCRUAL,
    ) -> list[JournalLine]:
        """Expense pairs, then invoice pairs, then payroll pairs."""
        basis = Basis(basis)
        lines: list[JournalLine] = []

        for expense in self.expenses.list_by_date(org_id, from_date, to_date):
            if expense.is_voided:
                continue
            lines.extend(self._expense_lines(expense))

        for invoice in self.invoices.list_by_due_date(org_id, from_date, to_date):
            if not _invoice_qualifies(invoice, basis):
                continue
            lines.extend(self._invoice_lines(invoice))

        for payroll in self.payrolls.list_by_pay_date(org_id, from_date, to_date):
            lines.extend(self._payroll_lines(payroll))

        return lines

    def _expense_lines(self, expense: Expense) -> list[JournalLine]:
        amount = to_decimal(expense.amount)
        if not amount:
            return []
        debit_account, credit_account = self.rules.for_expense(expense)
        return _pair(
            expense.date, debit_account, credit_account, amount,
            expense.description, SourceType.EXPENSE, expense.id,
        )

    def _invoice_lines(self, invoice: Invoice) -> list[JournalLine]:
        total = to_decimal(invoice.total)
        if not total:
            return []
        return _pair(
            invoice.due_date, coa.ACCOUNTS_RECEIVABLE, self.rules.revenue_account(invoice), total,
            f"Invoice {invoice.invoice_number}".strip(), SourceType.INVOICE, invoice.id,
        )

    def _payroll_lines(self, payroll: Payroll) -> list[JournalLine]:
        total = to_decimal(payroll.total_amount)
        if not total:
            return []
        description = f"Payroll {payroll.period_start.isoformat()} to {payroll.period_end.isoformat()}"
        return _pair(
            payroll.pay_date, coa.PAYROLL_WAGES, coa.PAYROLL_LIABILITIES, total,
            description, SourceType.PAYROLL, payroll.id,
        )


def _invoice_qualifies(invoice: Invoice, basis: Basis) -> bool:
    # Cash basis is approximated by paid invoices only.
    if basis == Basis.CASH:
        return invoice.status == "paid"
    return invoice.status != "void"


def _pair(
    on: date,
    debit_account: AccountCode,
    credit_account: AccountCode,
    amount: Decimal,
    description: str,
    source_type: SourceType,
    source_id: str,
) -> list[JournalLine]:
    return [
        JournalLine(on, debit_account, amount, ZERO, description, source_type, source_id),
        JournalLine(on, credit_account, ZERO, amount, description, source_type, source_id),
    ]
