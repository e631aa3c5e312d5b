"""
Main FastAPI application - Ledger core.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledger_core.api.dependencies import get_anchoring
from ledger_core.api.routers import accountancy, journal_entries
from ledger_core.core.config import get_settings
from ledger_core.core.logging import configure_logging
from ledger_core.domain.exceptions import (
    ConcurrencyError,
    LedgerError,
    NotFoundError,
    PeriodClosedError,
    PeriodNotReadyError,
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
)
from ledger_core.infrastructure.database import init_db

ERROR_STATUS: list[tuple[type[LedgerError], int]] = [
    (ValidationError, 400),
    (UnbalancedEntryError, 422),
    (UnknownAccountError, 422),
    (NotFoundError, 404),
    (ConcurrencyError, 409),
    (PeriodNotReadyError, 409),
    (PeriodClosedError, 409),
]


def status_for(exc: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    configure_logging(get_settings())
    init_db()
    yield
    get_anchoring().shutdown(wait=False)


app = FastAPI(
    title="Ledger Core API",
    description="""
## Double-entry ledger core

### Features:
- **Derived ledger**: balanced postings from expenses, invoices and payroll runs
- **Reports**: trial balance, profit and loss, general ledger, AR/AP aging, burn rate
- **Journal entries**: numbered, immutable, voidable, anchored
- **Month-end close**: readiness checks, close, reopen

### Principles:
- Debits always equal credits
- Posted entries are never edited, only voided
- Every mutation leaves an audit trail
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(journal_entries.router)
app.include_router(accountancy.router)


@app.get("/")
def root():
    return {
        "name": "Ledger Core API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Map ledger errors to HTTP status codes."""
    content = {"code": exc.code, "detail": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=status_for(exc), content=content)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
