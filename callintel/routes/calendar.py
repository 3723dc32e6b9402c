# callintel/routes/calendar.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import CalendarEvent, User
from ..schemas import CalendarEventOut, CalendarImportIn, CalendarSyncIn
from ..services.call_analysis import AnalysisConfig, NoActivePrompt, get_active_analysis_config
from ..services.calendar_sync import import_calendar_events, sync_user_calendar
from ..utils.dates import as_utc_naive
from .google_common import get_analysis_config, get_calendar_client, get_optional_drive_client

logger = logging.getLogger("calendar")

router = APIRouter(prefix="/api/calendar", tags=["google-calendar"])


@router.post("/sync")
def sync_calendar(
    body: Optional[CalendarSyncIn] = None,
    user: User = Depends(get_current_user),
    calendar=Depends(get_calendar_client),
    drive=Depends(get_optional_drive_client),
    db: Session = Depends(get_db),
):
    body = body or CalendarSyncIn()
    try:
        config = get_active_analysis_config(db)
    except NoActivePrompt:
        logger.warning("[calendar] no active prompt; syncing events without auto-import")
        config = None

    result = sync_user_calendar(
        db, user, body.start, body.end,
        calendar=calendar, drive=drive, config=config, auto_import=body.auto_import,
    )
    return result.as_dict()


@router.get("/events", response_model=list[CalendarEventOut])
def list_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    external_only: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = db.query(CalendarEvent).filter(CalendarEvent.user_id == user.id)
    if start:
        q = q.filter(CalendarEvent.start_time >= as_utc_naive(start))
    if end:
        q = q.filter(CalendarEvent.start_time <= as_utc_naive(end))
    if external_only:
        q = q.filter(CalendarEvent.is_external.is_(True))
    return q.order_by(CalendarEvent.start_time.desc()).all()


@router.post("/import")
def import_events(
    body: CalendarImportIn,
    user: User = Depends(get_current_user),
    config: AnalysisConfig = Depends(get_analysis_config),
    drive=Depends(get_optional_drive_client),
    db: Session = Depends(get_db),
):
    return import_calendar_events(db, user, body.event_ids, config, drive=drive).as_dict()
