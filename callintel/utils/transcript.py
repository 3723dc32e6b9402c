# callintel/utils/transcript.py
"""Metadata recovery for transcripts that arrive without a calendar event."""
import re
from datetime import datetime
from typing import List

_LIST_PATTERNS = [
    re.compile(r"(?:Attendees|Participants|Present|Attendees List):\s*([^\n]+)", re.I),
    re.compile(r"(?:With|Featuring|Including):\s*([^\n]+)", re.I),
]
_DIALOGUE = re.compile(r"^([A-Z][a-zA-Z ]{1,30}):\s+", re.M)
_NOT_SPEAKERS = re.compile(r"^(Note|Date|Time|Subject|Re|PS|FYI|Title|Attendees|Participants)$", re.I)

_DATE_PATTERNS = [
    (re.compile(r"Date:\s*(\d{4}-\d{2}-\d{2})", re.I), ("%Y-%m-%d",)),
    (re.compile(r"Date:\s*(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})", re.I), ("%m/%d/%Y", "%m-%d-%Y", "%m/%d/%y", "%m-%d-%y")),
    (re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"), ("%Y-%m-%d",)),
]


def parse_participants(text: str) -> List[str]:
    # explicit "Participants: a, b & c" lists win
    for pat in _LIST_PATTERNS:
        m = pat.search(text or "")
        if m:
            names = [p.strip() for p in re.split(r"[,;&]", m.group(1))]
            names = [n for n in names if 0 < len(n) < 100]
            if names:
                return names

    # otherwise collect "Name: ..." dialogue speakers
    speakers: list[str] = []
    for m in _DIALOGUE.finditer(text or ""):
        name = m.group(1).strip()
        if 2 <= len(name) <= 30 and not _NOT_SPEAKERS.match(name) and name not in speakers:
            speakers.append(name)

    if 0 < len(speakers) <= 20:
        return speakers
    return []


def extract_call_date(text: str, fallback: datetime) -> datetime:
    for pat, fmts in _DATE_PATTERNS:
        m = pat.search(text or "")
        if not m:
            continue
        for fmt in fmts:
            try:
                return datetime.strptime(m.group(1), fmt)
            except ValueError:
                continue
    return fallback


def clean_file_name(file_name: str) -> str:
    cleaned = re.sub(r"\.(txt|pdf|docx?|csv|vtt|srt)$", "", file_name or "", flags=re.I)
    cleaned = re.sub(r"^(transcript|meeting|call|notes?)[\s\-_:]*", "", cleaned, flags=re.I)
    cleaned = re.sub(r"[-_]+", " ", cleaned).strip()
    cleaned = re.sub(r"\s{2,}", " ", cleaned)
    if not cleaned:
        return "Imported Call"
    return cleaned[0].upper() + cleaned[1:]
