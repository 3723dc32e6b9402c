# callintel/routes/drive.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import CalendarEvent, Call, DriveFile, DriveSource, User
from ..schemas import DriveFileOut, DriveFolderIn, DriveImportIn, DriveSourceOut
from ..services.call_analysis import AnalysisConfig
from ..services.drive_import import import_drive_files, pending_files
from ..services.google_auth import is_connected
from ..services.google_drive import extract_folder_id, sync_all_folders
from .google_common import get_analysis_config, get_drive_client, get_optional_calendar_client

logger = logging.getLogger("drive")

router = APIRouter(prefix="/api/drive", tags=["google-drive"])


# ---------- Folders ----------
@router.get("/folders", response_model=list[DriveSourceOut])
def list_folders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(DriveSource).filter(DriveSource.user_id == user.id).order_by(DriveSource.id.asc()).all()


@router.post("/folders", response_model=DriveSourceOut, status_code=201)
def add_folder(
    body: DriveFolderIn,
    user: User = Depends(get_current_user),
    drive=Depends(get_drive_client),
    db: Session = Depends(get_db),
):
    folder_id = extract_folder_id(body.folder)
    if not folder_id:
        raise HTTPException(status_code=400, detail="Invalid folder id or URL")

    exists = (
        db.query(DriveSource)
        .filter(DriveSource.user_id == user.id, DriveSource.folder_id == folder_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="Folder already added")

    try:
        meta = drive.get_folder(folder_id)
    except Exception as e:
        raise HTTPException(status_code=404, detail=f"Folder not accessible: {e}")

    source = DriveSource(user_id=user.id, folder_id=folder_id, folder_name=meta.get("name"))
    db.add(source)
    db.commit()
    db.refresh(source)
    return source


@router.delete("/folders/{source_id}", status_code=204)
def remove_folder(source_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    source = db.get(DriveSource, source_id)
    if not source or source.user_id != user.id:
        raise HTTPException(status_code=404, detail="Folder not found")
    db.delete(source)
    db.commit()


# ---------- Sync / import ----------
@router.post("/sync")
def sync_drive(
    user: User = Depends(get_current_user),
    drive=Depends(get_drive_client),
    db: Session = Depends(get_db),
):
    results = sync_all_folders(db, user, drive)
    return {
        "folders": [r.as_dict() for r in results],
        "synced": sum(r.synced for r in results),
        "skipped": sum(r.skipped for r in results),
        "errors": [e for r in results for e in r.errors],
    }


@router.get("/import-to-calls", response_model=list[DriveFileOut])
def list_importable(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return pending_files(db, user)


@router.post("/import-to-calls")
def import_to_calls(
    body: DriveImportIn,
    user: User = Depends(get_current_user),
    config: AnalysisConfig = Depends(get_analysis_config),
    calendar=Depends(get_optional_calendar_client),
    db: Session = Depends(get_db),
):
    result = import_drive_files(
        db, user, config,
        file_ids=body.file_ids,
        calendar=calendar if body.match_calendar else None,
    )
    return result.as_dict()


# ---------- Status / housekeeping ----------
@router.get("/status")
def drive_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    by_status = dict(
        db.query(DriveFile.status, func.count(DriveFile.id))
        .filter(DriveFile.user_id == user.id)
        .group_by(DriveFile.status)
        .all()
    )
    return {
        "connected": is_connected(user),
        "email": user.google_email,
        "folders": db.query(func.count(DriveSource.id)).filter(DriveSource.user_id == user.id).scalar() or 0,
        "files": by_status,
        "pending_import": len(pending_files(db, user)),
    }


def _clear_drive_files(db: Session, user: User) -> int:
    file_ids = [fid for (fid,) in db.query(DriveFile.id).filter(DriveFile.user_id == user.id)]
    if not file_ids:
        return 0
    db.query(Call).filter(Call.drive_file_id.in_(file_ids)).update(
        {"drive_file_id": None}, synchronize_session=False
    )
    db.query(CalendarEvent).filter(CalendarEvent.transcript_file_id.in_(file_ids)).update(
        {"transcript_file_id": None, "has_transcript": False}, synchronize_session=False
    )
    db.query(DriveFile).filter(DriveFile.id.in_(file_ids)).delete(synchronize_session=False)
    return len(file_ids)


@router.post("/clear-data")
def clear_drive_data(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Forget synced files; calls created from them stay."""
    removed = _clear_drive_files(db, user)
    db.commit()
    logger.info(f"[drive] cleared {removed} files for user {user.id}")
    return {"removed_files": removed}


@router.post("/disconnect")
def disconnect_google(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user.google_access_token = None
    user.google_refresh_token = None
    user.google_token_expiry = None
    db.query(DriveSource).filter(DriveSource.user_id == user.id).delete(synchronize_session=False)
    db.commit()
    logger.info(f"[drive] disconnected Google for user {user.id}")
    return {"connected": False}
