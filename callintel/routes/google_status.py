# callintel/routes/google_status.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import User
from ..schemas import AutoSyncIn
from ..services.google_auth import is_connected

router = APIRouter(prefix="/api/google", tags=["google"])


@router.get("/status")
def google_status(user: User = Depends(get_current_user)):
    """
    Treats 'connected' as: user has a stored google_refresh_token.
    (Same tokens are used for Calendar + Drive because scopes include both.)
    """
    return {
        "connected": is_connected(user),
        "email": user.google_email,
        "name": user.google_name,
        "auto_sync_enabled": bool(user.auto_sync_enabled),
        "last_synced_at": user.last_synced_at,
        "last_sync_status": user.last_sync_status,
        "last_sync_error": user.last_sync_error,
    }


@router.put("/auto-sync")
def set_auto_sync(
    body: AutoSyncIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user.auto_sync_enabled = body.enabled
    db.commit()
    return {"auto_sync_enabled": user.auto_sync_enabled}
