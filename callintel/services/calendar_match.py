# callintel/services/calendar_match.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from ..config import settings
from ..models import DriveFile, FILE_IMPORTED
from ..utils.dates import as_utc_naive, parse_iso, rfc3339
from .domain_classifier import MeetingClassification, classify_meeting

logger = logging.getLogger("matcher")

T = TypeVar("T")

_MEET_LINK = re.compile(r"meet\.google\.com/([a-z0-9-]+)", re.I)
_WORD = re.compile(r"[A-Za-z0-9]+")
# words that say nothing about which meeting a file belongs to
_NOISE_WORDS = {"with", "from", "about", "call", "meeting", "sync", "weekly", "daily", "untitled"}


def extract_meet_code(link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    m = _MEET_LINK.search(link)
    return m.group(1) if m else None


def _tolerance(minutes: Optional[int]) -> timedelta:
    return timedelta(minutes=settings.TIME_MATCH_WINDOW_MINUTES if minutes is None else minutes)


def title_words(title: Optional[str]) -> List[str]:
    """Lower-cased title words longer than three characters, first occurrence order."""
    seen: List[str] = []
    for w in _WORD.findall(title or ""):
        w = w.lower()
        if len(w) > 3 and w not in seen:
            seen.append(w)
    return seen


def _quote(term: str) -> str:
    return term.replace("\\", "\\\\").replace("'", "\\'")


# ---------- Strategy 1: local time window ----------
def match_file_by_time(
    start: datetime,
    end: datetime,
    files: Iterable[T],
    tolerance_minutes: Optional[int] = None,
    get_time: Callable[[T], Optional[datetime]] = lambda f: f.modified_time,
) -> Optional[T]:
    """
    Pick the file modified closest to the meeting end, among files modified in
    [start - tolerance, end + tolerance]. Ties keep the first file seen.
    """
    tol = _tolerance(tolerance_minutes)
    start, end = as_utc_naive(start), as_utc_naive(end)
    lo, hi = start - tol, end + tol

    best, best_delta = None, None
    for f in files:
        t = get_time(f)
        if t is None:
            continue
        t = as_utc_naive(t)
        if not (lo <= t <= hi):
            continue
        delta = abs(t - end)
        if best is None or delta < best_delta:
            best, best_delta = f, delta
    return best


def local_candidates(db: Session, user_id: int, start: datetime, end: datetime,
                     tolerance_minutes: Optional[int] = None) -> List[DriveFile]:
    """Imported, still-unlinked drive files of this user inside the meeting window."""
    tol = _tolerance(tolerance_minutes)
    return (
        db.query(DriveFile)
        .filter(
            DriveFile.user_id == user_id,
            DriveFile.status == FILE_IMPORTED,
            DriveFile.raw_text.isnot(None),
            DriveFile.modified_time >= as_utc_naive(start) - tol,
            DriveFile.modified_time <= as_utc_naive(end) + tol,
            ~DriveFile.calls.any(),
        )
        .order_by(DriveFile.modified_time.desc())
        .all()
    )


# ---------- Strategy 2: remote search ----------
@dataclass
class ScoredCandidate:
    file: Dict[str, Any]
    score: float


def build_search_query(title: Optional[str], start: datetime, end: datetime,
                       tolerance_minutes: Optional[int] = None) -> str:
    from .google_drive import TRANSCRIPT_MIMES

    tol = _tolerance(tolerance_minutes)
    words = [w for w in title_words(title) if w not in _NOISE_WORDS][:3]
    name_terms = [f"name contains '{_quote(w)}'" for w in words]
    name_terms += ["name contains 'transcript'", "name contains 'meeting'"]
    mime_terms = [f"mimeType = '{m}'" for m in TRANSCRIPT_MIMES]
    return (
        f"({' or '.join(name_terms)})"
        f" and ({' or '.join(mime_terms)})"
        f" and modifiedTime >= '{rfc3339(as_utc_naive(start) - tol)}'"
        f" and modifiedTime <= '{rfc3339(as_utc_naive(end) + tol)}'"
        " and trashed = false"
    )


def score_candidate(title: Optional[str], meeting_end: datetime, candidate: Dict[str, Any]) -> float:
    modified = parse_iso(candidate.get("modifiedTime"))
    score = 0.0
    if modified is not None:
        hours = abs((modified - as_utc_naive(meeting_end)).total_seconds()) / 3600
        score += max(0.0, 100 - hours)

    name = (candidate.get("name") or "").lower()
    score += settings.MATCH_TITLE_WORD_WEIGHT * sum(1 for w in title_words(title) if w in name)
    if "transcript" in name:
        score += settings.MATCH_TRANSCRIPT_BONUS
    return score


def pick_best_candidate(title: Optional[str], meeting_end: datetime,
                        candidates: Sequence[Dict[str, Any]],
                        min_score: Optional[float] = None) -> Optional[ScoredCandidate]:
    floor = settings.MATCH_MIN_SCORE if min_score is None else min_score
    best: Optional[ScoredCandidate] = None
    for c in candidates:
        s = score_candidate(title, meeting_end, c)
        if best is None or s > best.score:
            best = ScoredCandidate(file=c, score=s)
    if best is None or best.score < floor:
        return None
    return best


def _store_remote_file(db: Session, user_id: int, meta: Dict[str, Any], drive) -> Optional[DriveFile]:
    from .google_drive import upsert_drive_file

    existing = db.query(DriveFile).filter(DriveFile.google_file_id == meta["id"]).first()
    if existing is not None and existing.calls:
        # already feeds a call
        return None
    text = drive.get_content(meta["id"], meta.get("mimeType") or "")
    row = upsert_drive_file(db, user_id, meta, raw_text=text)
    db.commit()
    db.refresh(row)
    return row


def find_transcript_for_event(db: Session, user_id: int, event, drive=None,
                              tolerance_minutes: Optional[int] = None) -> Optional[DriveFile]:
    """
    Locate the transcript of a calendar event.

    1. Local drive files modified inside the meeting window.
    2. A scored Drive search, when a client is given; the hit is stored as an
       imported drive file. Remote failures are logged and yield None.
    """
    files = local_candidates(db, user_id, event.start_time, event.end_time, tolerance_minutes)
    local = match_file_by_time(event.start_time, event.end_time, files, tolerance_minutes)
    if local is not None:
        logger.info(f"[matcher] '{event.summary}' -> local file {local.name}")
        return local

    if drive is None:
        return None

    try:
        query = build_search_query(event.summary, event.start_time, event.end_time, tolerance_minutes)
        candidates = drive.list_files(query, page_size=20)
        picked = pick_best_candidate(event.summary, event.end_time, candidates)
        if picked is None:
            logger.info(f"[matcher] '{event.summary}': no remote candidate above threshold")
            return None
        row = _store_remote_file(db, user_id, picked.file, drive)
        if row is not None:
            logger.info(f"[matcher] '{event.summary}' -> remote file {row.name} (score {picked.score:.1f})")
        return row
    except Exception as e:
        db.rollback()
        logger.warning(f"[matcher] remote transcript search failed for '{event.summary}': {e}")
        return None


# ---------- Event lookup for uploads ----------
def match_event_by_time(meeting_time: datetime, events: Iterable[T],
                        tolerance_minutes: Optional[int] = None) -> Optional[T]:
    """Event whose start or end lies nearest to meeting_time, within tolerance."""
    tol = _tolerance(tolerance_minutes)
    t = as_utc_naive(meeting_time)
    best, best_delta = None, None
    for ev in events:
        delta = min(abs(as_utc_naive(ev.start_time) - t), abs(as_utc_naive(ev.end_time) - t))
        if delta > tol:
            continue
        if best is None or delta < best_delta:
            best, best_delta = ev, delta
    return best


@dataclass
class MatchedCalendarEvent:
    event: Any
    classification: Optional[MeetingClassification]


def find_and_classify_calendar_event(calendar, meeting_time: datetime,
                                     tolerance_minutes: Optional[int] = None) -> Optional[MatchedCalendarEvent]:
    """
    Find the calendar event around meeting_time and classify its participants.
    Returns None when nothing matches or the calendar cannot be read.
    """
    tol = _tolerance(tolerance_minutes)
    t = as_utc_naive(meeting_time)
    try:
        events = calendar.list_events(t - tol, t + tol)
    except Exception as e:
        logger.warning(f"[matcher] calendar lookup failed: {e}")
        return None

    ev = match_event_by_time(t, events, tolerance_minutes)
    if ev is None:
        return None

    classification = None
    if not ev.attendees_omitted:
        classification = classify_meeting(ev.organizer, ev.attendees)
    return MatchedCalendarEvent(event=ev, classification=classification)
