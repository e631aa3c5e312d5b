"""Application layer - Use cases and DTOs."""

from ledger_core.application.anchoring import (
    AnchoringClient,
    AnchoringDispatcher,
    AnchorReceipt,
    NullAnchoringClient,
    build_canonical_payload,
    canonical_hash,
)
from ledger_core.application.audit import AuditTrail
from ledger_core.application.auto_journal import AutoJournalService
from ledger_core.application.journal_entries import JournalEntryFilters, JournalEntryService
from ledger_core.application.month_end import MonthEndCloseService, MonthEndResult
