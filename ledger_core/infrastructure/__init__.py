"""Infrastructure layer."""

from ledger_core.infrastructure.database import SessionLocal, get_db, init_db
from ledger_core.infrastructure.database.models import (
    AccountingPeriod,
    AuditLog,
    ChartOfAccountsEntry,
    JournalEntry,
    JournalEntryLine,
    PeriodCloseCheck,
)
from ledger_core.infrastructure.repositories import (
    AccountingPeriodRepository,
    ChartLookup,
    OrgChartRepository,
    SqlCustomerRepository,
    SqlExpenseRepository,
    SqlInvoiceRepository,
    SqlPayrollRepository,
)
