# callintel/services/drive_import.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..models import CalendarEvent, DriveFile, User, FILE_IMPORTED, FILE_SKIPPED
from ..repos.calls import DuplicateCallError
from ..utils.transcript import clean_file_name, extract_call_date, parse_participants
from .call_analysis import AnalysisConfig, extract_participants_with_ai
from .call_pipeline import BatchResult, NewCall, ingest_call, pause
from .calendar_match import find_and_classify_calendar_event
from .category_classifier import load_catalog
from .domain_classifier import SOURCE_UNKNOWN

logger = logging.getLogger("drive_import")


def pending_files(db: Session, user: User, file_ids: Optional[Sequence[int]] = None) -> List[DriveFile]:
    """Imported drive files of the user that no call uses yet."""
    q = db.query(DriveFile).filter(
        DriveFile.user_id == user.id,
        DriveFile.status == FILE_IMPORTED,
        DriveFile.raw_text.isnot(None),
        ~DriveFile.calls.any(),
    )
    if file_ids:
        q = q.filter(DriveFile.id.in_(list(file_ids)))
    return q.order_by(DriveFile.modified_time.asc()).all()


def _participants(text: str) -> List[str]:
    names = parse_participants(text)
    return names or extract_participants_with_ai(text)


def build_new_call(db: Session, user: User, f: DriveFile, calendar=None) -> NewCall:
    text = f.raw_text or ""
    new = NewCall(
        title=clean_file_name(f.name),
        call_date=extract_call_date(text, f.modified_time),
        transcript=text,
        organizer=user.google_name or user.google_email or user.name or "Unknown",
        participants=_participants(text),
        user_id=user.id,
        classification_source=SOURCE_UNKNOWN,
        drive_file_id=f.id,
    )
    if calendar is None:
        return new

    matched = find_and_classify_calendar_event(calendar, f.modified_time)
    if matched is None:
        return new

    ev = matched.event
    new.meet_code = ev.meet_code
    new.call_date = ev.start_time
    if ev.attendees and not new.participants:
        new.participants = list(ev.attendees)
    if matched.classification is not None:
        new.is_external = matched.classification.is_external
        new.external_domains = list(matched.classification.external_domains)
        new.classification_source = matched.classification.classification_source

    row = (
        db.query(CalendarEvent)
        .filter(CalendarEvent.user_id == user.id, CalendarEvent.google_event_id == ev.id)
        .first()
    )
    if row is not None:
        new.calendar_event_id = row.id
    return new


def import_drive_files(
    db: Session,
    user: User,
    config: AnalysisConfig,
    *,
    file_ids: Optional[Sequence[int]] = None,
    calendar=None,
) -> BatchResult:
    """
    Turn synced drive files into analyzed, classified calls.
    A file whose meeting already has a call is marked skipped.
    """
    files = pending_files(db, user, file_ids)
    result = BatchResult(total=len(files))
    catalog = load_catalog(db)

    for i, f in enumerate(files):
        label = f.name
        try:
            new = build_new_call(db, user, f, calendar)
            call = ingest_call(db, new, config, catalog)
            if new.calendar_event_id:
                ev = db.get(CalendarEvent, new.calendar_event_id)
                if ev is not None and not ev.imported:
                    ev.imported = True
                    ev.imported_call_id = call.id
                    ev.has_transcript = True
                    ev.transcript_file_id = f.id
                    db.commit()
            result.success += 1
        except DuplicateCallError as e:
            db.rollback()
            f.status = FILE_SKIPPED
            f.error_message = str(e)
            db.commit()
            logger.warning(f"[drive_import] {label} skipped: {e}")
            result.fail(label, e)
        except Exception as e:
            db.rollback()
            logger.error(f"[drive_import] {label} failed: {e}")
            result.fail(label, e)
        if i < len(files) - 1:
            pause()

    logger.info(f"[drive_import] user {user.id}: {result.success}/{result.total} files imported")
    return result
