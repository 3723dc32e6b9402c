# callintel/routes/google_common.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import User
from ..services.call_analysis import AnalysisConfig, NoActivePrompt, get_active_analysis_config
from ..services.google_auth import IntegrationNotConnected, is_connected, user_credentials
from ..services.google_calendar import CalendarClient
from ..services.google_drive import DriveClient

logger = logging.getLogger("google")


def _credentials(db: Session, user: User):
    try:
        return user_credentials(db, user)
    except IntegrationNotConnected as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RuntimeError as e:
        # missing OAuth client config
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Google token refresh failed: {e}")


def get_calendar_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarClient:
    return CalendarClient(_credentials(db, user))


def get_drive_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DriveClient:
    return DriveClient(_credentials(db, user))


def _optional_credentials(db: Session, user: User):
    if not is_connected(user):
        return None
    try:
        return _credentials(db, user)
    except HTTPException as e:
        logger.warning(f"[google] continuing without Google for user {user.id}: {e.detail}")
        return None


def get_optional_drive_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Optional[DriveClient]:
    creds = _optional_credentials(db, user)
    return DriveClient(creds) if creds is not None else None


def get_optional_calendar_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Optional[CalendarClient]:
    creds = _optional_credentials(db, user)
    return CalendarClient(creds) if creds is not None else None


def get_analysis_config(db: Session = Depends(get_db)) -> AnalysisConfig:
    try:
        return get_active_analysis_config(db)
    except NoActivePrompt as e:
        raise HTTPException(status_code=400, detail=str(e))
