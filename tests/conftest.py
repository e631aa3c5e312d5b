"""
Pytest configuration and fixtures.
"""

from collections.abc import Iterable
from concurrent.futures import Executor, Future
from datetime import date
from decimal import Decimal

import pytest

from ledger_core.application.anchoring import (
    AnchoringClient,
    AnchoringDispatcher,
    AnchorReceipt,
)
from ledger_core.application.audit import AuditTrail
from ledger_core.application.journal_entries import JournalEntryService
from ledger_core.core.config import Settings
from ledger_core.domain.chart import ChartOfAccounts, default_chart, fallback_chart
from ledger_core.domain.deriver import JournalLineDeriver
from ledger_core.domain.entities import Customer, Expense, Invoice, Payroll
from ledger_core.domain.exceptions import AnchoringError
from ledger_core.domain.reports import ReportEngine
from ledger_core.domain.services import (
    ICustomerRepository,
    IExpenseRepository,
    IInvoiceRepository,
    IPayrollRepository,
)
from ledger_core.infrastructure.database import build_engine, build_session_factory, init_db

ORG_ID = "org-1"


class FakeExpenseRepository(IExpenseRepository):

    def __init__(self):
        self.items: list[Expense] = []

    def add(self, expense: Expense) -> Expense:
        self.items.append(expense)
        return expense

    def list_by_date(self, org_id, start_date, end_date):
        return [
            e for e in self.items
            if e.org_id == org_id and not e.is_voided and start_date <= e.date <= end_date
        ]

    def list_active(self, org_id):
        return [e for e in self.items if e.org_id == org_id and not e.is_voided]


class FakeInvoiceRepository(IInvoiceRepository):

    def __init__(self):
        self.items: list[Invoice] = []

    def add(self, invoice: Invoice) -> Invoice:
        self.items.append(invoice)
        return invoice

    def list_by_due_date(self, org_id, start_date, end_date):
        return [i for i in self.items if i.org_id == org_id and start_date <= i.due_date <= end_date]

    def list_open(self, org_id):
        return [i for i in self.items if i.org_id == org_id and i.is_open]


class FakePayrollRepository(IPayrollRepository):

    def __init__(self):
        self.items: list[Payroll] = []

    def add(self, payroll: Payroll) -> Payroll:
        self.items.append(payroll)
        return payroll

    def list_by_pay_date(self, org_id, start_date, end_date):
        return [p for p in self.items if p.org_id == org_id and start_date <= p.pay_date <= end_date]


class FakeCustomerRepository(ICustomerRepository):

    def __init__(self):
        self.items: dict[str, Customer] = {}

    def add(self, customer: Customer) -> Customer:
        self.items[customer.id] = customer
        return customer

    def get_by_ids(self, org_id, customer_ids: Iterable[str]):
        return {
            cid: self.items[cid]
            for cid in customer_ids
            if cid in self.items and self.items[cid].org_id == org_id
        }


class Sources:
    """In-memory source records for one test."""

    def __init__(self):
        self.expenses = FakeExpenseRepository()
        self.invoices = FakeInvoiceRepository()
        self.payrolls = FakePayrollRepository()
        self.customers = FakeCustomerRepository()

    def expense(self, amount, category="software", on=date(2025, 3, 10), **kwargs) -> Expense:
        kwargs.setdefault("id", f"exp-{len(self.expenses.items) + 1}")
        kwargs.setdefault("org_id", ORG_ID)
        return self.expenses.add(
            Expense(amount=Decimal(str(amount)), category=category, date=on, **kwargs)
        )

    def invoice(self, total, due=date(2025, 3, 15), status="sent", customer_id="cust-1", **kwargs) -> Invoice:
        kwargs.setdefault("id", f"inv-{len(self.invoices.items) + 1}")
        kwargs.setdefault("org_id", ORG_ID)
        kwargs.setdefault("invoice_number", f"INV-{len(self.invoices.items) + 1:03d}")
        return self.invoices.add(
            Invoice(total=Decimal(str(total)), due_date=due, status=status, customer_id=customer_id, **kwargs)
        )

    def payroll(self, total, pay_date=date(2025, 3, 28), **kwargs) -> Payroll:
        kwargs.setdefault("id", f"pay-{len(self.payrolls.items) + 1}")
        kwargs.setdefault("org_id", ORG_ID)
        kwargs.setdefault("period_start", pay_date.replace(day=1))
        kwargs.setdefault("period_end", pay_date)
        return self.payrolls.add(Payroll(total_amount=Decimal(str(total)), pay_date=pay_date, **kwargs))

    def customer(self, customer_id, name) -> Customer:
        return self.customers.add(Customer(id=customer_id, org_id=ORG_ID, name=name))


class RecordingAnchoringClient(AnchoringClient):
    """Records submissions; fails while ``fail`` is set."""

    def __init__(self):
        self.calls: list[tuple[str, str, str]] = []
        self.fail = False

    def submit(self, canonical_payload, entity_type, entity_id):
        self.calls.append((canonical_payload, entity_type, entity_id))
        if self.fail:
            raise AnchoringError("anchoring node unavailable")
        return AnchorReceipt(external_tx_ref=f"tx-{len(self.calls)}", confirmed_height=100 + len(self.calls))


class ImmediateExecutor(Executor):
    """Runs submitted work inline so anchoring outcomes are visible to assertions."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def org_id() -> str:
    return ORG_ID


@pytest.fixture
def chart() -> ChartOfAccounts:
    return default_chart()


@pytest.fixture
def static_chart() -> ChartOfAccounts:
    return fallback_chart()


@pytest.fixture
def sources() -> Sources:
    return Sources()


@pytest.fixture
def deriver(sources, chart) -> JournalLineDeriver:
    return JournalLineDeriver(sources.expenses, sources.invoices, sources.payrolls, chart)


@pytest.fixture
def report_engine(deriver, chart, sources) -> ReportEngine:
    return ReportEngine(deriver, chart, sources.invoices, sources.expenses, sources.customers)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def settings(database_url) -> Settings:
    return Settings(_env_file=None, database_url=database_url)


@pytest.fixture
def engine(database_url):
    engine = build_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def anchoring_client() -> RecordingAnchoringClient:
    return RecordingAnchoringClient()


@pytest.fixture
def anchoring(anchoring_client, session_factory) -> AnchoringDispatcher:
    return AnchoringDispatcher(anchoring_client, session_factory, executor=ImmediateExecutor())


@pytest.fixture
def audit(session_factory) -> AuditTrail:
    return AuditTrail(session_factory)


@pytest.fixture
def journal_service(db, static_chart, anchoring, audit, settings) -> JournalEntryService:
    return JournalEntryService(db, static_chart, anchoring=anchoring, audit=audit, settings=settings)
