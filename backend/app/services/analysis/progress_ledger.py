"""
Progress ledger: one row per (analysis session, section).

All writes are keyed on the unique (session_id, section_name) pair. ``update``
only touches the columns it is given, which the background enhancement relies
on to refresh competitors without losing what the bulk analysis recorded.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Union
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    InvalidSectionError, InvalidTransitionError, ProgressEntryNotFoundError
)
from app.models.analysis import (
    AnalysisProgress, AnalysisSession, ProgressStatus, SectionName, ALL_SECTIONS,
    TERMINAL_SESSION_STATUSES
)

logger = logging.getLogger(__name__)

SectionLike = Union[SectionName, str]

ALLOWED_TRANSITIONS = {
    ProgressStatus.PENDING: {
        ProgressStatus.PENDING, ProgressStatus.IN_PROGRESS,
        ProgressStatus.COMPLETED, ProgressStatus.FAILED,
    },
    ProgressStatus.IN_PROGRESS: {
        ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED, ProgressStatus.FAILED,
    },
    ProgressStatus.COMPLETED: {ProgressStatus.ENHANCING},
    ProgressStatus.ENHANCING: {
        ProgressStatus.ENHANCING, ProgressStatus.COMPLETED, ProgressStatus.FAILED,
    },
    ProgressStatus.FAILED: set(),
}

# Only this section may be re-opened after completing
REOPENABLE_SECTIONS = {SectionName.COMPETITIVE_ANALYSIS}

UPDATABLE_FIELDS = {"status", "progress_percentage", "data", "completed_at"}

STALE_REASON = "no output produced"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_section(section: SectionLike) -> SectionName:
    try:
        return SectionName(section)
    except ValueError:
        raise InvalidSectionError(f"Unknown analysis section: {section}")


class ProgressLedger:
    """Keyed access to analysis_progress rows"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, session_id: str, section: SectionName):
        return self.db.query(AnalysisProgress).filter(
            AnalysisProgress.session_id == session_id,
            AnalysisProgress.section_name == section,
        )

    def seed(self, session_id: str, section: SectionLike) -> AnalysisProgress:
        """Create the pending row for a section, or return the existing one.

        Seeding twice never produces a second row: the pair is unique and an
        existing row is returned untouched.
        """
        section = to_section(section)
        entry = self._query(session_id, section).first()
        if entry:
            return entry

        entry = AnalysisProgress(
            session_id=session_id,
            section_name=section,
            status=ProgressStatus.PENDING,
            progress_percentage=0,
            started_at=utcnow(),
        )
        self.db.add(entry)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent seed of the same pair
            self.db.rollback()
            entry = self._query(session_id, section).first()
            if entry is None:
                raise
        return entry

    def seed_all(self, session_id: str) -> List[AnalysisProgress]:
        """Seed every section for a session before any stage result is recorded"""
        return [self.seed(session_id, section) for section in ALL_SECTIONS]

    def read(self, session_id: str, section: SectionLike) -> Optional[AnalysisProgress]:
        return self._query(session_id, to_section(section)).first()

    def read_all(self, session_id: str) -> List[AnalysisProgress]:
        entries = self.db.query(AnalysisProgress).filter(
            AnalysisProgress.session_id == session_id
        ).all()
        order = {section: index for index, section in enumerate(ALL_SECTIONS)}
        return sorted(entries, key=lambda e: order[SectionName(e.section_name)])

    def update(self, session_id: str, section: SectionLike, merge_data: bool = False,
               **fields: Any) -> AnalysisProgress:
        """Partially update one row.

        Columns not passed are left as they are. With ``merge_data`` the given
        ``data`` is shallow-merged into the stored payload instead of replacing it.
        """
        section = to_section(section)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update progress fields: {', '.join(sorted(unknown))}")

        entry = self._query(session_id, section).first()
        if entry is None:
            raise ProgressEntryNotFoundError(
                f"No progress entry for section {section.value} in session {session_id}"
            )

        if "status" in fields:
            new_status = ProgressStatus(fields["status"])
            self._check_transition(entry, section, new_status)
            entry.status = new_status

        if "progress_percentage" in fields:
            entry.progress_percentage = self._check_percentage(fields["progress_percentage"])

        if "data" in fields:
            data = fields["data"]
            if merge_data and data is not None:
                # New dict so the JSON column registers the change
                data = {**(entry.data or {}), **data}
            entry.data = data

        if "completed_at" in fields:
            entry.completed_at = fields["completed_at"]

        self.db.commit()
        self.db.refresh(entry)
        return entry

    def mark_all_failed(self, session_id: str) -> int:
        """Fail every row of a session that has not reached a terminal status"""
        now = utcnow()
        changed = 0
        for entry in self.read_all(session_id):
            current = ProgressStatus(entry.status)
            if current in (ProgressStatus.COMPLETED, ProgressStatus.FAILED):
                continue
            entry.status = ProgressStatus.FAILED
            entry.completed_at = now
            changed += 1
        self.db.commit()
        return changed

    def expire_stale(self, older_than: timedelta) -> int:
        """Resolve rows that would otherwise never reach a terminal status.

        - pending rows of a finished session are failed (the stage produced nothing)
        - in_progress rows are failed
        - enhancing rows are put back to completed with their data intact
        """
        cutoff = utcnow() - older_than
        now = utcnow()
        changed = 0

        stale = (
            self.db.query(AnalysisProgress)
            .join(AnalysisSession, AnalysisSession.id == AnalysisProgress.session_id)
            .filter(
                or_(
                    and_(
                        AnalysisProgress.status == ProgressStatus.PENDING,
                        AnalysisSession.status.in_(list(TERMINAL_SESSION_STATUSES)),
                        AnalysisProgress.started_at < cutoff,
                    ),
                    and_(
                        AnalysisProgress.status.in_([
                            ProgressStatus.IN_PROGRESS, ProgressStatus.ENHANCING
                        ]),
                        AnalysisProgress.updated_at < cutoff,
                    ),
                )
            )
            .all()
        )

        for entry in stale:
            status = ProgressStatus(entry.status)
            if status == ProgressStatus.PENDING:
                entry.status = ProgressStatus.FAILED
                entry.data = {**(entry.data or {}), "reason": STALE_REASON}
                entry.completed_at = now
            elif status == ProgressStatus.IN_PROGRESS:
                entry.status = ProgressStatus.FAILED
                entry.completed_at = now
            else:
                entry.status = ProgressStatus.COMPLETED
                entry.progress_percentage = 100
                entry.completed_at = now
            changed += 1

        if changed:
            self.db.commit()
            logger.info(f"Expired {changed} stale progress entries")
        return changed

    @staticmethod
    def _check_transition(entry: AnalysisProgress, section: SectionName,
                          new_status: ProgressStatus) -> None:
        current = ProgressStatus(entry.status)
        allowed = ALLOWED_TRANSITIONS[current]
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Section {section.value} cannot move from {current.value} to {new_status.value}"
            )
        if (current == ProgressStatus.COMPLETED and new_status == ProgressStatus.ENHANCING
                and section not in REOPENABLE_SECTIONS):
            raise InvalidTransitionError(
                f"Section {section.value} cannot be re-opened for enhancement"
            )

    @staticmethod
    def _check_percentage(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"progress_percentage must be an integer, got {value!r}")
        if not 0 <= value <= 100:
            raise ValueError(f"progress_percentage must be between 0 and 100, got {value}")
        return value
