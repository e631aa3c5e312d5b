"""
Application Service - persistent journal entries.

Entries are immutable once posted: the only permitted transition is
posted -> voided. Numbering is ``JE-<year>-<seq>`` per organisation.
"""

import logging
import threading
from collections.abc import Iterable
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ledger_core.application.anchoring import (
    JOURNAL_ENTRY,
    AnchoringDispatcher,
    journal_entry_record,
    prepare_anchor,
)
from ledger_core.application.audit import AuditTrail
from ledger_core.core.config import Settings, get_settings
from ledger_core.domain.chart import ChartOfAccounts
from ledger_core.domain.exceptions import (
    ConcurrencyError,
    NotFoundError,
    PeriodClosedError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_core.domain.value_objects import (
    ZERO,
    AnchorStatus,
    EntryStatus,
    JournalLineInput,
    to_decimal,
)
from ledger_core.infrastructure.database.models import JournalEntry, JournalEntryLine, utcnow
from ledger_core.infrastructure.repositories import AccountingPeriodRepository, OrgChartRepository

logger = logging.getLogger(__name__)

_number_locks: dict[tuple[str, int], threading.Lock] = {}
_number_locks_guard = threading.Lock()


def _number_lock(org_id: str, year: int) -> threading.Lock:
    with _number_locks_guard:
        return _number_locks.setdefault((org_id, year), threading.Lock())


_reference_locks = [threading.Lock() for _ in range(64)]


def _reference_lock(org_id: str, reference_type: str | None, reference_id: str | None):
    """Striped lock for one source record, taken before the number lock."""
    if not (reference_type and reference_id):
        return nullcontext()
    return _reference_locks[hash((org_id, reference_type, reference_id)) % len(_reference_locks)]


def format_entry_number(year: int, sequence: int) -> str:
    return f"JE-{year}-{sequence:04d}"


def parse_entry_sequence(entry_number: str) -> int:
    """Sequence part of ``JE-<year>-<seq>``; 0 when malformed."""
    parts = entry_number.split("-")
    if len(parts) != 3 or not parts[2].isdigit():
        return 0
    return int(parts[2])


@dataclass
class JournalEntryFilters:
    start_date: date | None = None
    end_date: date | None = None
    account_code: str | None = None
    reference_type: str | None = None
    status: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class _ValidatedLine:
    account_code: str
    debit: Decimal
    credit: Decimal
    description: str | None


def _validate_lines(lines: Iterable[JournalLineInput]) -> list[_ValidatedLine]:
    validated = []
    for number, line in enumerate(lines, start=1):
        code = (line.account_code or "").strip()
        if not code:
            raise ValidationError(f"Line {number}: account code is required")
        debit = to_decimal(line.debit_amount)
        credit = to_decimal(line.credit_amount)
        if debit < ZERO or credit < ZERO:
            raise ValidationError(f"Line {number}: amounts must not be negative")
        if (debit != ZERO) == (credit != ZERO):
            raise ValidationError(f"Line {number}: exactly one of debit or credit must be non-zero")
        validated.append(_ValidatedLine(code, debit, credit, line.description))

    if len(validated) < 2:
        raise ValidationError("A journal entry needs at least two lines")
    return validated


class JournalEntryService:
    """
    Application Service - create, void and query journal entries.
    """

    def __init__(
        self,
        db: Session,
        static_chart: ChartOfAccounts,
        chart_repository: OrgChartRepository | None = None,
        anchoring: AnchoringDispatcher | None = None,
        audit: AuditTrail | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.static_chart = static_chart
        self.chart_repository = chart_repository or OrgChartRepository(db)
        self.periods = AccountingPeriodRepository(db)
        self.anchoring = anchoring
        self.audit = audit
        self.settings = settings or get_settings()

    def create_journal_entry(
        self,
        org_id: str,
        entry_date: date,
        description: str,
        lines: Iterable[JournalLineInput],
        created_by: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        skip_if_referenced: bool = False,
    ) -> JournalEntry | None:
        """
        Validate, number and persist a balanced entry with its lines.

        With ``skip_if_referenced`` the call returns None instead of posting
        when a posted entry already refers to ``(reference_type, reference_id)``.
        """
        validated = _validate_lines(lines)

        total_debit = sum((line.debit for line in validated), ZERO)
        total_credit = sum((line.credit for line in validated), ZERO)
        if abs(total_debit - total_credit) >= self.settings.balance_tolerance:
            raise UnbalancedEntryError(total_debit, total_credit)

        names = self._resolve_account_names(org_id, [line.account_code for line in validated])

        if self.periods.is_closed(org_id, entry_date):
            if self.settings.enforce_period_lock:
                raise PeriodClosedError(
                    f"Period {entry_date.year}-{entry_date.month:02d} is closed",
                    details={"entry_date": entry_date.isoformat()},
                )
            logger.warning(
                "Posting into closed period %d-%02d for org %s",
                entry_date.year, entry_date.month, org_id,
            )

        with _reference_lock(org_id, reference_type, reference_id), _number_lock(org_id, entry_date.year):
            if skip_if_referenced and reference_type and reference_id:
                if self.has_posted_entry_for_reference(reference_type, reference_id, org_id):
                    logger.debug("Entry for %s %s already posted; skipping", reference_type, reference_id)
                    return None

            entry = self._insert(
                org_id, entry_date, description, validated, names,
                created_by, reference_type, reference_id, skip_if_referenced,
            )
            if entry is None:
                logger.debug("Entry for %s %s posted concurrently; skipping", reference_type, reference_id)
                return None

        logger.info(
            "Journal entry %s posted for org %s (%s lines, %s)",
            entry.entry_number, org_id, len(validated), total_debit,
        )
        self._anchor(entry)
        if self.audit:
            self.audit.record(
                org_id, created_by, "CREATE", JOURNAL_ENTRY, entry.id,
                new_value={
                    "entry_number": entry.entry_number,
                    "entry_date": entry.entry_date,
                    "reference_type": reference_type,
                    "reference_id": reference_id,
                    "total": total_debit,
                },
            )
        return entry

    def void_journal_entry(
        self, entry_id: str, user_id: str, reason: str, org_id: str | None = None
    ) -> JournalEntry:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void a journal entry")

        entry = self.db.get(JournalEntry, entry_id)
        if entry is None or (org_id is not None and entry.org_id != org_id):
            raise NotFoundError("Journal entry", entry_id)
        if entry.status == EntryStatus.VOIDED.value:
            raise ValidationError(f"Journal entry {entry.entry_number} is already voided")

        entry.status = EntryStatus.VOIDED.value
        entry.voided_by = user_id
        entry.voided_at = utcnow()
        entry.void_reason = reason.strip()
        entry.updated_at = utcnow()
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Journal entry %s voided by %s", entry.entry_number, user_id)
        self._anchor(entry)
        if self.audit:
            self.audit.record(
                entry.org_id, user_id, "VOID", JOURNAL_ENTRY, entry.id,
                old_value={"status": EntryStatus.POSTED.value},
                new_value={"status": EntryStatus.VOIDED.value, "reason": entry.void_reason},
            )
        return entry

    def get_journal_entries(
        self, org_id: str, filters: JournalEntryFilters | None = None
    ) -> list[JournalEntry]:
        """Newest entry date first; an account filter keeps entries with any matching line."""
        filters = filters or JournalEntryFilters()
        query = (
            self.db.query(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .filter(JournalEntry.org_id == org_id)
        )
        if filters.start_date:
            query = query.filter(JournalEntry.entry_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(JournalEntry.entry_date <= filters.end_date)
        if filters.reference_type:
            query = query.filter(JournalEntry.reference_type == filters.reference_type)
        if filters.status:
            query = query.filter(JournalEntry.status == filters.status)
        if filters.account_code:
            query = query.filter(
                JournalEntry.lines.any(JournalEntryLine.account_code == filters.account_code)
            )
        limit = filters.limit or self.settings.default_page_limit
        return (
            query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .limit(limit)
            .all()
        )

    def get_journal_entry(self, org_id: str, entry_id: str) -> JournalEntry:
        entry = self.db.get(JournalEntry, entry_id)
        if entry is None or entry.org_id != org_id:
            raise NotFoundError("Journal entry", entry_id)
        return entry

    def has_posted_entry_for_reference(
        self, reference_type: str, reference_id: str, org_id: str | None = None
    ) -> bool:
        query = self.db.query(JournalEntry.id).filter(
            JournalEntry.reference_type == reference_type,
            JournalEntry.reference_id == reference_id,
            JournalEntry.status == EntryStatus.POSTED.value,
        )
        if org_id:
            query = query.filter(JournalEntry.org_id == org_id)
        return query.first() is not None

    def _resolve_account_names(self, org_id: str, codes: list[str]) -> dict[str, str]:
        """Org chart first, then the static chart; unknown codes raise UnknownAccountError."""
        lookup = self.chart_repository.lookup(org_id, codes)
        names = {}
        for code in codes:
            name = lookup.name_for(code) if lookup.schema_present else None
            names[code] = name or self.static_chart.get_account(code).name
        return names

    def _next_entry_number(self, org_id: str, year: int) -> str:
        prefix = f"JE-{year}-"
        existing = self.db.query(JournalEntry.entry_number).filter(
            JournalEntry.org_id == org_id,
            JournalEntry.entry_number.like(f"{prefix}%"),
        )
        last = max((parse_entry_sequence(number) for (number,) in existing), default=0)
        return format_entry_number(year, last + 1)

    def _entry_number_taken(self, org_id: str, entry_number: str) -> bool:
        query = self.db.query(JournalEntry.id).filter(
            JournalEntry.org_id == org_id,
            JournalEntry.entry_number == entry_number,
        )
        return query.first() is not None

    def _insert(
        self,
        org_id: str,
        entry_date: date,
        description: str,
        lines: list[_ValidatedLine],
        names: dict[str, str],
        created_by: str | None,
        reference_type: str | None,
        reference_id: str | None,
        skip_if_referenced: bool = False,
    ) -> JournalEntry | None:
        """
        Insert under the next free number. A number taken meanwhile is retried
        once. A reference posted meanwhile returns None with
        ``skip_if_referenced`` and raises ValidationError otherwise. Other
        integrity failures propagate unchanged.
        """
        for attempt in (1, 2):
            entry_number = self._next_entry_number(org_id, entry_date.year)
            entry = JournalEntry(
                org_id=org_id,
                entry_number=entry_number,
                entry_date=entry_date,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                status=EntryStatus.POSTED.value,
                created_by=created_by,
            )
            for line_number, line in enumerate(lines, start=1):
                entry.lines.append(
                    JournalEntryLine(
                        line_number=line_number,
                        account_code=line.account_code,
                        account_name=names[line.account_code],
                        debit_amount=line.debit,
                        credit_amount=line.credit,
                        description=line.description,
                    )
                )
            try:
                self.db.add(entry)
                self.db.flush()
                self.db.commit()
                return entry
            except IntegrityError:
                self.db.rollback()
                if reference_type and reference_id and self.has_posted_entry_for_reference(
                    reference_type, reference_id, org_id
                ):
                    if skip_if_referenced:
                        return None
                    raise ValidationError(
                        f"A posted entry already references {reference_type} {reference_id}",
                        details={"reference_type": reference_type, "reference_id": reference_id},
                    ) from None
                if not self._entry_number_taken(org_id, entry_number):
                    raise
                if attempt == 2:
                    raise ConcurrencyError(
                        f"Could not allocate an entry number for {org_id} in {entry_date.year}"
                    ) from None
                logger.warning("Entry number collision for org %s; retrying", org_id)
            except SQLAlchemyError:
                self.db.rollback()
                raise
        raise ConcurrencyError(f"Could not allocate an entry number for {org_id}")

    def _anchor(self, entry: JournalEntry) -> None:
        """Hash the entry, mark it pending and hand it to the dispatcher."""
        if self.anchoring is None:
            return
        try:
            payload, digest = prepare_anchor(journal_entry_record(entry), JOURNAL_ENTRY, entry.id)
            entry.anchor_hash = digest
            entry.anchor_status = AnchorStatus.PENDING.value
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not mark entry %s for anchoring", entry.id, exc_info=True)
            return
        self.anchoring.dispatch(JOURNAL_ENTRY, entry.id, payload)
