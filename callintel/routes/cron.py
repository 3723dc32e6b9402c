# callintel/routes/cron.py
from __future__ import annotations

import hmac
import logging
import time
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models import User
from ..services.call_analysis import NoActivePrompt, get_active_analysis_config
from ..services.calendar_sync import sync_user_calendar
from ..services.google_auth import user_credentials
from ..services.google_calendar import CalendarClient
from ..services.google_drive import DriveClient

logger = logging.getLogger("cron")

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _check_secret(authorization: Optional[str]) -> None:
    if not settings.CRON_SECRET:
        raise HTTPException(status_code=503, detail="CRON_SECRET is not configured")
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _clients_for(db: Session, user: User) -> Tuple[CalendarClient, DriveClient]:
    creds = user_credentials(db, user)
    return CalendarClient(creds), DriveClient(creds)


@router.get("/sync-calendars")
def sync_calendars(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    _check_secret(authorization)

    try:
        config = get_active_analysis_config(db)
    except NoActivePrompt:
        logger.warning("[cron] no active prompt; events will be synced without auto-import")
        config = None

    users = (
        db.query(User)
        .filter(User.auto_sync_enabled.is_(True), User.google_refresh_token.isnot(None))
        .order_by(User.id.asc())
        .all()
    )

    summary = {"total": len(users), "success": 0, "failed": 0, "imported_calls": 0, "errors": []}
    for i, user in enumerate(users):
        label = user.google_email or f"user {user.id}"
        try:
            calendar, drive = _clients_for(db, user)
            result = sync_user_calendar(db, user, calendar=calendar, drive=drive, config=config)
        except Exception as e:
            db.rollback()
            logger.error(f"[cron] {label}: {e}")
            summary["failed"] += 1
            summary["errors"].append(f"{label}: {e}")
        else:
            summary["imported_calls"] += result.imported_calls
            if result.success:
                summary["success"] += 1
            else:
                summary["failed"] += 1
                summary["errors"].extend(f"{label}: {err}" for err in result.errors)
        if i < len(users) - 1 and settings.CRON_USER_DELAY_S > 0:
            time.sleep(settings.CRON_USER_DELAY_S)

    logger.info(f"[cron] calendar sync: {summary['success']}/{summary['total']} users ok")
    return summary
