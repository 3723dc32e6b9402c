# callintel/services/calendar_sync.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..models import CalendarEvent, Call, User
from ..repos.calls import DuplicateCallError
from ..utils.dates import as_utc_naive, now_utc
from ..utils.transcript import clean_file_name
from .call_analysis import AnalysisConfig
from .call_pipeline import BatchResult, NewCall, ingest_call, pause
from .calendar_match import find_transcript_for_event
from .category_classifier import Playbook, load_catalog
from .domain_classifier import (
    SOURCE_CALENDAR, SOURCE_UNKNOWN, MeetingClassification, classify_meeting,
    unknown_classification,
)
from .google_auth import IntegrationNotConnected
from .google_calendar import CalendarEventData

logger = logging.getLogger("calendar_sync")

SYNC_SUCCESS = "success"
SYNC_PARTIAL = "partial"
SYNC_FAILED = "failed"


class NoTranscriptFound(LookupError):
    pass


@dataclass
class SyncResult:
    success: bool = False
    new_events: int = 0
    updated_events: int = 0
    imported_calls: int = 0
    failed_imports: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def classify_event(ev: CalendarEventData) -> MeetingClassification:
    if ev.attendees_omitted:
        return unknown_classification("Attendee list hidden by calendar permissions")
    return classify_meeting(ev.organizer, ev.attendees)


def find_primary_event(db: Session, user_id: int, ev: CalendarEventData) -> Optional[CalendarEvent]:
    """The same meeting already synced by another user, if any."""
    same = CalendarEvent.google_event_id == ev.id
    if ev.meet_code:
        same = or_(same, and_(CalendarEvent.meet_code == ev.meet_code,
                              CalendarEvent.start_time == ev.start_time))
    return (
        db.query(CalendarEvent)
        .filter(CalendarEvent.user_id != user_id, CalendarEvent.is_duplicate.is_(False), same)
        .order_by(CalendarEvent.id.asc())
        .first()
    )


def upsert_event(db: Session, user_id: int, ev: CalendarEventData,
                 classification: MeetingClassification) -> Tuple[CalendarEvent, bool]:
    row = (
        db.query(CalendarEvent)
        .filter(CalendarEvent.user_id == user_id, CalendarEvent.google_event_id == ev.id)
        .first()
    )
    created = row is None
    if created:
        row = CalendarEvent(user_id=user_id, google_event_id=ev.id)
        db.add(row)

    row.summary = ev.summary
    row.start_time = as_utc_naive(ev.start_time)
    row.end_time = as_utc_naive(ev.end_time)
    row.organizer = ev.organizer
    row.attendees = list(ev.attendees)
    row.attendees_omitted = ev.attendees_omitted
    row.hangout_link = ev.hangout_link
    row.meet_code = ev.meet_code
    row.is_external = classification.is_external
    row.external_domains = list(classification.external_domains)
    row.classification_source = classification.classification_source
    row.synced_at = now_utc()

    if not row.imported:
        primary = find_primary_event(db, user_id, ev)
        row.is_duplicate = primary is not None
        row.primary_event_id = primary.id if primary else None
        row.primary_user_id = primary.user_id if primary else None
    return row, created


def eligible_for_transcript(row: CalendarEvent) -> bool:
    """Only confirmed-external, non-duplicate Meet events get a transcript search."""
    return bool(row.meet_code) and row.is_external is True and not row.is_duplicate and not row.imported


def import_calendar_event(
    db: Session,
    user: User,
    row: CalendarEvent,
    config: AnalysisConfig,
    catalog: Optional[Sequence[Playbook]] = None,
    drive=None,
) -> Call:
    if row.imported and row.imported_call_id:
        raise DuplicateCallError("Event already imported")

    drive_file = row.transcript_file
    if drive_file is not None and (drive_file.calls or not drive_file.raw_text):
        # the linked file was consumed by another call since the sync
        logger.info(f"[calendar_sync] event {row.id}: linked file {drive_file.id} is taken, searching again")
        row.transcript_file = None
        row.has_transcript = False
        db.commit()
        drive_file = None
    if drive_file is None:
        drive_file = find_transcript_for_event(db, user.id, row, drive)
    if drive_file is None or not (drive_file.raw_text or "").strip():
        raise NoTranscriptFound("No transcript file found")

    new = NewCall(
        title=row.summary or clean_file_name(drive_file.name),
        call_date=row.start_time,
        transcript=drive_file.raw_text,
        organizer=row.organizer or "Unknown",
        participants=list(row.attendees or []),
        user_id=user.id,
        is_external=row.is_external,
        external_domains=list(row.external_domains or []),
        classification_source=SOURCE_CALENDAR if row.is_external is not None else SOURCE_UNKNOWN,
        meet_code=row.meet_code,
        drive_file_id=drive_file.id,
        calendar_event_id=row.id,
    )
    call = ingest_call(db, new, config, catalog)

    row.has_transcript = True
    row.transcript_file_id = drive_file.id
    row.imported = True
    row.imported_call_id = call.id
    db.commit()
    return call


def sync_user_calendar(
    db: Session,
    user: User,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    *,
    calendar,
    drive=None,
    config: Optional[AnalysisConfig] = None,
    auto_import: Optional[bool] = None,
) -> SyncResult:
    """
    Pull Meet events of one user into calendar_events, classify them, look up
    transcripts for external ones and optionally import those as calls.

    Auto-import needs an AnalysisConfig; without one events are only synced.
    """
    result = SyncResult()
    auto_import = settings.AUTO_IMPORT_ON_SYNC if auto_import is None else auto_import
    now = now_utc()
    start = as_utc_naive(start) if start else now - timedelta(days=settings.SYNC_WINDOW_DAYS)
    end = as_utc_naive(end) if end else now + timedelta(days=settings.SYNC_WINDOW_DAYS)

    try:
        if not user.google_refresh_token:
            raise IntegrationNotConnected("No Google integration found for user")

        events = calendar.list_events(start, end)
        catalog = load_catalog(db) if auto_import and config is not None else None

        for ev in events:
            label = ev.summary or ev.id
            try:
                classification = classify_event(ev)
                row, created = upsert_event(db, user.id, ev, classification)
                db.flush()

                if eligible_for_transcript(row) and row.transcript_file_id is None:
                    found = find_transcript_for_event(db, user.id, row, drive)
                    if found is not None:
                        row.has_transcript = True
                        row.transcript_file_id = found.id
                db.commit()

                if created:
                    result.new_events += 1
                else:
                    result.updated_events += 1
            except Exception as e:
                db.rollback()
                logger.error(f"[calendar_sync] event {label} failed: {e}")
                result.errors.append(f"Event {label}: {e}")
                continue

            if auto_import and config is not None and row.has_transcript and eligible_for_transcript(row):
                try:
                    import_calendar_event(db, user, row, config, catalog, drive)
                    result.imported_calls += 1
                except Exception as e:
                    db.rollback()
                    result.failed_imports += 1
                    logger.error(f"[calendar_sync] import of {label} failed: {e}")
                    result.errors.append(f"Import {label}: {e}")
                pause()

        user.last_synced_at = now_utc()
        user.last_sync_status = SYNC_PARTIAL if result.errors else SYNC_SUCCESS
        user.last_sync_error = "; ".join(result.errors[:5]) or None
        db.commit()
        result.success = True
        logger.info(
            f"[calendar_sync] user {user.id}: new={result.new_events} updated={result.updated_events} "
            f"imported={result.imported_calls} failed={result.failed_imports}"
        )
    except Exception as e:
        db.rollback()
        logger.error(f"[calendar_sync] sync failed for user {user.id}: {e}")
        result.errors.append(str(e))
        user.last_synced_at = now_utc()
        user.last_sync_status = SYNC_FAILED
        user.last_sync_error = str(e)
        db.commit()
    return result


@dataclass
class CalendarImportResult(BatchResult):
    no_transcript: int = 0


def import_calendar_events(
    db: Session,
    user: User,
    event_ids: Sequence[int],
    config: AnalysisConfig,
    drive=None,
) -> CalendarImportResult:
    """Import the selected synced events of a user as calls, one at a time."""
    rows = (
        db.query(CalendarEvent)
        .filter(CalendarEvent.user_id == user.id, CalendarEvent.id.in_(list(event_ids)))
        .order_by(CalendarEvent.start_time.asc())
        .all()
    )
    result = CalendarImportResult(total=len(rows))
    catalog = load_catalog(db)

    for i, row in enumerate(rows):
        label = row.summary or row.google_event_id
        try:
            import_calendar_event(db, user, row, config, catalog, drive)
            result.success += 1
        except NoTranscriptFound as e:
            db.rollback()
            result.no_transcript += 1
            result.fail(label, e)
        except Exception as e:
            db.rollback()
            logger.error(f"[calendar_sync] import of {label} failed: {e}")
            result.fail(label, e)
        if i < len(rows) - 1:
            pause()

    logger.info(f"[calendar_sync] imported {result.success}/{result.total} events for user {user.id}")
    return result
