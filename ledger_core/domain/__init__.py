"""Domain layer - Pure Python business logic."""

from ledger_core.domain.chart import ChartOfAccounts, default_chart, fallback_chart
from ledger_core.domain.deriver import JournalLineDeriver
from ledger_core.domain.entities import Account, Customer, Expense, Invoice, InvoiceLineItem, Payroll
from ledger_core.domain.exceptions import (
    AnchoringError,
    ConcurrencyError,
    LedgerError,
    NotFoundError,
    PeriodClosedError,
    PeriodNotReadyError,
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
)
from ledger_core.domain.reports import ReportEngine
from ledger_core.domain.services import (
    ICustomerRepository,
    IExpenseRepository,
    IInvoiceRepository,
    IPayrollRepository,
    PostingRules,
)
from ledger_core.domain.value_objects import (
    AccountCode,
    AccountType,
    Basis,
    JournalLine,
    JournalLineInput,
)
