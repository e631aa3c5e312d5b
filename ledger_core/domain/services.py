"""
Domain Services - source repositories and posting rules.

The posting rules decide which accounts a business event hits. They are
shared by the derived ledger and the auto-posting hooks so that both paths
book the same event to the same accounts.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date

from . import chart as coa
from .chart import ChartOfAccounts
from .entities import Customer, Expense, Invoice, Payroll
from .tags import has_production_tag, parse_account_override, parse_payment_mode
from .value_objects import AccountCode


class IExpenseRepository(ABC):

    @abstractmethod
    def list_by_date(self, org_id: str, start_date: date, end_date: date) -> list[Expense]:
        """Non-voided expenses dated within the inclusive range."""
        ...

    @abstractmethod
    def list_active(self, org_id: str) -> list[Expense]:
        """All non-voided expenses of the organisation."""
        ...


class IInvoiceRepository(ABC):

    @abstractmethod
    def list_by_due_date(self, org_id: str, start_date: date, end_date: date) -> list[Invoice]:
        """Invoices of any status due within the inclusive range."""
        ...

    @abstractmethod
    def list_open(self, org_id: str) -> list[Invoice]:
        """Invoices still in draft or sent status."""
        ...


class IPayrollRepository(ABC):

    @abstractmethod
    def list_by_pay_date(self, org_id: str, start_date: date, end_date: date) -> list[Payroll]:
        ...


class ICustomerRepository(ABC):

    @abstractmethod
    def get_by_ids(self, org_id: str, customer_ids: Iterable[str]) -> dict[str, Customer]:
        ...


_CATEGORY_KEYWORDS: list[tuple[tuple[str, ...], AccountCode]] = [
    (("software", "saas"), coa.SOFTWARE),
    (("rent", "lease"), coa.RENT),
    (("marketing", "ads", "advert"), coa.MARKETING),
    (("office", "supplies", "stationery"), coa.OFFICE_SUPPLIES),
]

_BANK_PAYMENT_MODES = frozenset({"bank", "cash"})


class PostingRules:
    """
    Service - account selection for source events.
    """

    def __init__(self, chart: ChartOfAccounts):
        self.chart = chart

    def expense_account(
        self,
        category: str | None,
        tags: Iterable[str] | None,
        has_production_batch: bool = False,
    ) -> AccountCode:
        """
        Debit account for an expense; first matching rule wins:
        explicit ``acct:`` override, production cost, category keyword,
        miscellaneous.
        """
        override = parse_account_override(tags)
        if override and self.chart.has_account(override):
            return AccountCode(override)

        if has_production_batch or has_production_tag(tags):
            return coa.COGS_PRODUCTION

        normalized = (category or "").lower()
        for keywords, code in _CATEGORY_KEYWORDS:
            if any(keyword in normalized for keyword in keywords):
                return code

        return coa.MISCELLANEOUS_EXPENSE

    def expense_credit_account(self, tags: Iterable[str] | None) -> AccountCode:
        """Bank when paid by bank or cash, otherwise Accounts Payable."""
        if parse_payment_mode(tags) in _BANK_PAYMENT_MODES:
            return coa.BANK_OPERATING
        return coa.ACCOUNTS_PAYABLE

    def revenue_account(self, invoice: Invoice) -> AccountCode:
        """Subscription revenue only when every line item is a subscription."""
        items = invoice.line_items
        if items and all("subscription" in (item.description or "").lower() for item in items):
            return coa.REVENUE_SUBSCRIPTIONS
        return coa.REVENUE_PRODUCTS

    def for_expense(self, expense: Expense) -> tuple[AccountCode, AccountCode]:
        """(debit, credit) accounts for an expense."""
        debit = self.expense_account(
            expense.category, expense.tags, bool(expense.production_batch_id)
        )
        return debit, self.expense_credit_account(expense.tags)
