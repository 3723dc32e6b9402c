# callintel/services/google_drive.py
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from googleapiclient.discovery import build
from sqlalchemy.orm import Session

from ..models import (
    DriveFile, DriveSource, User, FILE_ERROR, FILE_IMPORTED,
)
from ..utils.dates import now_utc, parse_iso
from ..utils.io import docx_text, pdf_text, strip_nuls

logger = logging.getLogger("drive")

FOLDER_MIME = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
GOOGLE_SHEET_MIME = "application/vnd.google-apps.spreadsheet"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"

# mime types a remote transcript search considers
TRANSCRIPT_MIMES = ("text/plain", GOOGLE_DOC_MIME, DOCX_MIME)

FILE_FIELDS = "id,name,mimeType,modifiedTime,size,webViewLink"

_FOLDER_URL = re.compile(r"/folders/([a-zA-Z0-9_-]+)")
_ID_PARAM = re.compile(r"[?&]id=([a-zA-Z0-9_-]+)")


class DriveClient:
    """Thin wrapper over the Drive v3 API. Tests pass a fake with the same methods."""

    def __init__(self, creds=None, service=None):
        self._svc = service or build("drive", "v3", credentials=creds, cache_discovery=False)

    def list_files(self, query: str, page_size: int = 10,
                   order_by: str = "modifiedTime desc") -> List[Dict[str, Any]]:
        resp = self._svc.files().list(
            q=query,
            pageSize=page_size,
            orderBy=order_by,
            fields=f"files({FILE_FIELDS})",
        ).execute()
        return resp.get("files", [])

    def list_folder(self, folder_id: str,
                    page_token: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        resp = self._svc.files().list(
            q=f"'{folder_id}' in parents and trashed = false",
            pageSize=100,
            pageToken=page_token,
            fields=f"nextPageToken,files({FILE_FIELDS})",
        ).execute()
        return resp.get("files", []), resp.get("nextPageToken")

    def get_folder(self, folder_id: str) -> Dict[str, Any]:
        return self._svc.files().get(fileId=folder_id, fields="id,name,mimeType").execute()

    def get_content(self, file_id: str, mime_type: str) -> str:
        files = self._svc.files()
        if mime_type == GOOGLE_DOC_MIME:
            data = files.export(fileId=file_id, mimeType="text/plain").execute()
        elif mime_type == GOOGLE_SHEET_MIME:
            data = files.export(fileId=file_id, mimeType="text/csv").execute()
        else:
            data = files.get_media(fileId=file_id).execute()

        if isinstance(data, str):
            return strip_nuls(data)
        if mime_type == PDF_MIME:
            return strip_nuls(pdf_text(data))
        if mime_type == DOCX_MIME:
            return strip_nuls(docx_text(data))
        return strip_nuls(data.decode("utf-8", errors="ignore"))


def extract_folder_id(url_or_id: str) -> Optional[str]:
    """Accept a bare folder id or any Drive folder URL."""
    s = (url_or_id or "").strip()
    if not s:
        return None
    m = _FOLDER_URL.search(s) or _ID_PARAM.search(s)
    if m:
        return m.group(1)
    if re.fullmatch(r"[a-zA-Z0-9_-]+", s):
        return s
    return None


# ---------- Folder sync ----------
@dataclass
class FolderSyncResult:
    folder_id: str
    synced: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def upsert_drive_file(db: Session, user_id: int, meta: Dict[str, Any], *,
                      raw_text: Optional[str], error: Optional[str] = None) -> DriveFile:
    row = db.query(DriveFile).filter(DriveFile.google_file_id == meta["id"]).first()
    if row is None:
        row = DriveFile(user_id=user_id, google_file_id=meta["id"])
        db.add(row)

    row.name = meta.get("name") or "Untitled"
    row.mime_type = meta.get("mimeType") or "application/octet-stream"
    row.modified_time = parse_iso(meta.get("modifiedTime")) or now_utc()
    row.size = int(meta["size"]) if str(meta.get("size") or "").isdigit() else None
    row.web_view_link = meta.get("webViewLink")
    if error is None:
        row.raw_text = raw_text
        row.status = FILE_IMPORTED
        row.error_message = None
        row.imported_at = now_utc()
    else:
        row.status = FILE_ERROR
        row.error_message = error
    return row


def sync_folder(db: Session, user: User, folder_id: str, drive: DriveClient) -> FolderSyncResult:
    """
    Pull every file of a folder into drive_files.
    Files already imported and unchanged since are left alone.
    """
    result = FolderSyncResult(folder_id=folder_id)
    page_token = None
    while True:
        files, page_token = drive.list_folder(folder_id, page_token)
        for meta in files:
            if meta.get("mimeType") == FOLDER_MIME:
                result.skipped += 1
                continue

            existing = db.query(DriveFile).filter(DriveFile.google_file_id == meta["id"]).first()
            modified = parse_iso(meta.get("modifiedTime"))
            if (existing is not None and existing.status == FILE_IMPORTED
                    and modified is not None and existing.modified_time >= modified):
                result.skipped += 1
                continue

            try:
                text = drive.get_content(meta["id"], meta.get("mimeType") or "")
                upsert_drive_file(db, user.id, meta, raw_text=text)
                result.synced += 1
            except Exception as e:
                logger.warning(f"[drive] failed to fetch {meta.get('name')}: {e}")
                upsert_drive_file(db, user.id, meta, raw_text=None, error=str(e))
                result.errors.append(f"{meta.get('name')}: {e}")
            db.commit()

        if not page_token:
            break

    source = (
        db.query(DriveSource)
        .filter(DriveSource.user_id == user.id, DriveSource.folder_id == folder_id)
        .first()
    )
    if source is not None:
        source.last_sync = now_utc()
        db.commit()

    logger.info(f"[drive] folder {folder_id}: synced={result.synced} skipped={result.skipped} "
                f"errors={len(result.errors)}")
    return result


def sync_all_folders(db: Session, user: User, drive: DriveClient) -> List[FolderSyncResult]:
    sources = (
        db.query(DriveSource)
        .filter(DriveSource.user_id == user.id, DriveSource.status == "active")
        .order_by(DriveSource.id.asc())
        .all()
    )
    results = []
    for src in sources:
        try:
            results.append(sync_folder(db, user, src.folder_id, drive))
        except Exception as e:
            db.rollback()
            logger.error(f"[drive] folder {src.folder_id} sync failed: {e}")
            results.append(FolderSyncResult(folder_id=src.folder_id, errors=[str(e)]))
    return results
