"""
FastAPI dependencies - identity headers and service wiring.
"""

import logging
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ledger_core.application.anchoring import AnchoringClient, AnchoringDispatcher, NullAnchoringClient
from ledger_core.application.audit import AuditTrail
from ledger_core.application.journal_entries import JournalEntryService
from ledger_core.application.month_end import MonthEndCloseService
from ledger_core.core.config import Settings, get_settings
from ledger_core.domain.chart import ChartOfAccounts, default_chart, fallback_chart
from ledger_core.domain.deriver import JournalLineDeriver
from ledger_core.domain.reports import ReportEngine
from ledger_core.infrastructure.database import SessionLocal, get_db
from ledger_core.infrastructure.repositories import (
    SqlCustomerRepository,
    SqlExpenseRepository,
    SqlInvoiceRepository,
    SqlPayrollRepository,
)

logger = logging.getLogger(__name__)


def get_org_id(x_org_id: str = Header(..., min_length=1, description="Organisation id")) -> str:
    return x_org_id


def get_user_id(x_user_id: str = Header("system", description="Acting user id")) -> str:
    return x_user_id


@lru_cache
def get_chart() -> ChartOfAccounts:
    return default_chart()


@lru_cache
def get_static_chart() -> ChartOfAccounts:
    return fallback_chart()


def build_anchoring_client(settings: Settings) -> AnchoringClient:
    """Configured external client when anchoring is enabled, local receipts otherwise."""
    if not settings.anchoring_enabled:
        return NullAnchoringClient()
    if settings.anchoring_client is None:
        raise ValueError("LEDGER_ANCHORING_CLIENT is required when anchoring is enabled")
    client = settings.anchoring_client()
    if not isinstance(client, AnchoringClient):
        raise TypeError(f"{type(client).__name__} is not an AnchoringClient")
    logger.info("Anchoring through %s", type(client).__name__)
    return client


@lru_cache
def get_anchoring() -> AnchoringDispatcher:
    settings = get_settings()
    return AnchoringDispatcher(build_anchoring_client(settings), SessionLocal, workers=settings.anchoring_workers)


@lru_cache
def get_audit() -> AuditTrail:
    return AuditTrail(SessionLocal)


def get_report_engine(
    db: Session = Depends(get_db),
    chart: ChartOfAccounts = Depends(get_chart),
) -> ReportEngine:
    expenses = SqlExpenseRepository(db)
    invoices = SqlInvoiceRepository(db)
    deriver = JournalLineDeriver(expenses, invoices, SqlPayrollRepository(db), chart)
    return ReportEngine(deriver, chart, invoices, expenses, SqlCustomerRepository(db))


def get_journal_service(
    db: Session = Depends(get_db),
    static_chart: ChartOfAccounts = Depends(get_static_chart),
    anchoring: AnchoringDispatcher = Depends(get_anchoring),
    audit: AuditTrail = Depends(get_audit),
    settings: Settings = Depends(get_settings),
) -> JournalEntryService:
    return JournalEntryService(db, static_chart, anchoring=anchoring, audit=audit, settings=settings)


def get_month_end_service(
    db: Session = Depends(get_db),
    report_engine: ReportEngine = Depends(get_report_engine),
    anchoring: AnchoringDispatcher = Depends(get_anchoring),
    audit: AuditTrail = Depends(get_audit),
    settings: Settings = Depends(get_settings),
) -> MonthEndCloseService:
    return MonthEndCloseService(
        db,
        report_engine,
        SqlExpenseRepository(db),
        SqlInvoiceRepository(db),
        SqlPayrollRepository(db),
        anchoring=anchoring,
        audit=audit,
        settings=settings,
    )
