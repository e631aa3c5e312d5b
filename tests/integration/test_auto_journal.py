"""
Integration tests - Auto-posting hooks.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_core.application.auto_journal import AutoJournalService
from ledger_core.domain.entities import Expense, Invoice, InvoiceLineItem, Payroll
from ledger_core.infrastructure.database.models import JournalEntry


@pytest.fixture
def auto(journal_service, chart):
    return AutoJournalService(journal_service, chart)


def accounts(entry):
    return [(l.account_code, l.debit_amount, l.credit_amount) for l in entry.lines]


def make_invoice(**kwargs):
    values = dict(
        id="inv-1", org_id="org-1", total=Decimal("1200"), due_date=date(2025, 3, 15),
        status="sent", customer_id="cust-1", invoice_number="INV-001",
    )
    values.update(kwargs)
    return Invoice(**values)


class TestAutoJournal:

    def test_expense_posted_once(self, auto, db):
        expense = Expense(
            id="exp-1", org_id="org-1", amount=Decimal("89"), category="Software",
            date=date(2025, 3, 3), description="GitHub",
        )

        entry = auto.post_expense(expense, "u-1")

        assert entry.description == "Expense: GitHub"
        assert entry.reference_type == "expense"
        assert entry.reference_id == "exp-1"
        assert accounts(entry) == [("6200", Decimal("89"), Decimal("0")), ("2000", Decimal("0"), Decimal("89"))]
        assert entry.lines[1].description == "To be paid"

        assert auto.post_expense(expense, "u-1") is None
        assert db.query(JournalEntry).count() == 1

    def test_expense_uses_tags(self, auto):
        expense = Expense(
            id="exp-2", org_id="org-1", amount=Decimal("300"), category="other",
            date=date(2025, 3, 3), tags=["acct:6300", "pay:bank"],
        )
        entry = auto.post_expense(expense, "u-1")
        assert [l.account_code for l in entry.lines] == ["6300", "1000"]

    def test_invoice_and_payment_are_separate_events(self, auto, db):
        invoice = make_invoice(line_items=[InvoiceLineItem("Annual subscription")])

        issued = auto.post_invoice(invoice, "u-1")
        paid = auto.post_invoice_payment(
            make_invoice(status="paid", payment_date=date(2025, 3, 20)), "u-1"
        )

        assert issued.entry_date == date(2025, 3, 15)
        assert accounts(issued) == [("1100", Decimal("1200"), Decimal("0")), ("4010", Decimal("0"), Decimal("1200"))]
        assert issued.lines[1].description == "Revenue recognized"
        assert paid.entry_date == date(2025, 3, 20)
        assert paid.reference_type == "invoice_payment"
        assert accounts(paid) == [("1000", Decimal("1200"), Decimal("0")), ("1100", Decimal("0"), Decimal("1200"))]
        assert auto.post_invoice(invoice, "u-1") is None
        assert db.query(JournalEntry).count() == 2

    def test_payroll(self, auto):
        payroll = Payroll(
            id="pay-1", org_id="org-1", total_amount=Decimal("8000"),
            period_start=date(2025, 3, 1), period_end=date(2025, 3, 15), pay_date=date(2025, 3, 16),
        )
        entry = auto.post_payroll(payroll, "u-1")
        assert entry.description == "Payroll 2025-03-01 to 2025-03-15"
        assert accounts(entry) == [("6000", Decimal("8000"), Decimal("0")), ("2100", Decimal("0"), Decimal("8000"))]

    def test_non_positive_amounts_skipped(self, auto, db):
        expense = Expense(
            id="exp-3", org_id="org-1", amount=Decimal("0"), category="software", date=date(2025, 3, 3),
        )
        assert auto.post_expense(expense, "u-1") is None
        assert auto.post_invoice(make_invoice(total=Decimal("-5")), "u-1") is None
        assert db.query(JournalEntry).count() == 0
