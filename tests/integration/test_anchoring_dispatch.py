"""
Integration tests - Anchoring dispatch and reconciliation.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import selectinload

from ledger_core.application.anchoring import (
    JOURNAL_ENTRY,
    AnchoringDispatcher,
    journal_entry_record,
    prepare_anchor,
)
from ledger_core.application.journal_entries import JournalEntryService
from ledger_core.domain.value_objects import JournalLineInput
from ledger_core.infrastructure.database.models import JournalEntry


def post(service):
    return service.create_journal_entry(
        org_id="org-1",
        entry_date=date(2025, 3, 31),
        description="Software",
        lines=[
            JournalLineInput("6200", debit_amount=Decimal("49")),
            JournalLineInput("1000", credit_amount=Decimal("49")),
        ],
        created_by="u-1",
    )


def stored(session_factory, entry_id) -> JournalEntry:
    db = session_factory()
    try:
        return (
            db.query(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .filter(JournalEntry.id == entry_id)
            .one()
        )
    finally:
        db.close()


class TestAnchoringDispatch:

    def test_successful_anchor_recorded(self, journal_service, anchoring_client, session_factory):
        entry = post(journal_service)

        row = stored(session_factory, entry.id)
        assert row.anchor_status == "anchored"
        assert row.anchor_tx_ref == "tx-1"
        assert row.anchor_height == 101
        assert row.anchored_at is not None

        payload, entity_type, entity_id = anchoring_client.calls[0]
        assert (entity_type, entity_id) == (JOURNAL_ENTRY, entry.id)
        assert prepare_anchor(journal_entry_record(row), JOURNAL_ENTRY, entry.id) == (payload, row.anchor_hash)

    def test_failure_never_reaches_caller(self, journal_service, anchoring_client, session_factory):
        anchoring_client.fail = True

        entry = post(journal_service)

        assert entry.entry_number == "JE-2025-0001"
        row = stored(session_factory, entry.id)
        assert row.anchor_status == "failed"
        assert row.anchor_tx_ref is None

    def test_reconcile_retries_failed_entries(self, journal_service, anchoring, anchoring_client, session_factory):
        anchoring_client.fail = True
        first = post(journal_service)
        second = post(journal_service)
        anchoring_client.fail = False

        assert anchoring.reconcile_pending("org-1") == 2
        assert stored(session_factory, first.id).anchor_status == "anchored"
        assert stored(session_factory, second.id).anchor_status == "anchored"
        assert anchoring.reconcile_pending("org-1") == 0

    def test_void_reanchors_with_new_hash(self, journal_service, anchoring_client, session_factory):
        entry = post(journal_service)
        posted_hash = stored(session_factory, entry.id).anchor_hash

        journal_service.void_journal_entry(entry.id, "u-1", "Duplicate")

        row = stored(session_factory, entry.id)
        assert row.anchor_hash != posted_hash
        assert row.anchor_status == "anchored"
        assert row.anchor_tx_ref == "tx-2"
        assert len(anchoring_client.calls) == 2

    def test_reconcile_voided_entry_after_reload(self, journal_service, anchoring, anchoring_client, session_factory):
        entry = post(journal_service)
        anchoring_client.fail = True
        journal_service.void_journal_entry(entry.id, "u-1", "Duplicate")
        anchoring_client.fail = False

        row = stored(session_factory, entry.id)
        assert row.anchor_status == "failed"
        assert prepare_anchor(journal_entry_record(row), JOURNAL_ENTRY, entry.id)[1] == row.anchor_hash

        assert anchoring.reconcile_pending("org-1") == 1
        assert stored(session_factory, entry.id).anchor_status == "anchored"

    def test_stale_payload_does_not_overwrite(self, journal_service, anchoring, session_factory):
        entry = post(journal_service)
        stale_payload, _ = prepare_anchor(journal_entry_record(entry), JOURNAL_ENTRY, entry.id)
        journal_service.void_journal_entry(entry.id, "u-1", "Duplicate")

        future = anchoring.dispatch(JOURNAL_ENTRY, entry.id, stale_payload)

        assert future.result() is True
        assert stored(session_factory, entry.id).anchor_tx_ref == "tx-2"

    def test_stopped_executor_leaves_entry_pending(
        self, db, static_chart, anchoring_client, session_factory, settings
    ):
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        dispatcher = AnchoringDispatcher(anchoring_client, session_factory, executor=executor)
        service = JournalEntryService(db, static_chart, anchoring=dispatcher, settings=settings)

        entry = post(service)

        assert stored(session_factory, entry.id).anchor_status == "pending"
        assert anchoring_client.calls == []
