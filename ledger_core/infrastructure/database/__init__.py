"""
Database initialization and session management.
"""

from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel

from ledger_core.core.config import get_settings
from ledger_core.domain.chart import DEFAULT_ACCOUNTS
from ledger_core.infrastructure.database.models import (
    AccountingPeriod,
    AuditLog,
    ChartOfAccountsEntry,
    Customer,
    Expense,
    Invoice,
    InvoiceLineItem,
    JournalEntry,
    JournalEntryLine,
    PeriodCloseCheck,
    Payroll,
    get_engine_url,
)


def build_engine(url: str, echo: bool = False) -> Engine:
    if "sqlite" in url:
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


DATABASE_URL = get_engine_url()

engine = build_engine(DATABASE_URL, echo=get_settings().sql_echo)

SessionLocal = build_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency - Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables."""
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind=bind)


def seed_default_accounts(org_id: str, session_factory: sessionmaker | None = None) -> int:
    """Seed the default chart of accounts for an organisation. Returns rows added."""
    db = (session_factory or SessionLocal)()
    try:
        existing = {
            code
            for (code,) in db.query(ChartOfAccountsEntry.account_code).filter(
                ChartOfAccountsEntry.org_id == org_id
            )
        }
        added = 0
        for code, name, acc_type, _group in DEFAULT_ACCOUNTS:
            if code in existing:
                continue
            db.add(
                ChartOfAccountsEntry(
                    org_id=org_id,
                    account_code=code,
                    account_name=name,
                    account_type=acc_type.value,
                )
            )
            added += 1
        db.commit()
        return added
    finally:
        db.close()


__all__ = [
    "AccountingPeriod",
    "AuditLog",
    "ChartOfAccountsEntry",
    "Customer",
    "Expense",
    "Invoice",
    "InvoiceLineItem",
    "JournalEntry",
    "JournalEntryLine",
    "PeriodCloseCheck",
    "Payroll",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_db",
    "init_db",
    "seed_default_accounts",
]
