# callintel/utils/io.py
import io
import logging
import re
from pathlib import Path

logger = logging.getLogger("io")

TEXT_EXTS = {".txt", ".vtt", ".srt", ".md"}
ALLOWED_EXTS = TEXT_EXTS | {".pdf", ".docx"}

_VTT_HEADER = re.compile(r"^\s*(WEBVTT|Kind:.*|Language:.*)\s*$", re.I)
_TIMESTAMP = re.compile(r"\b\d{2}:\d{2}:\d{2}(?:[.,]\d{1,3})?\s*-->\s*\d{2}:\d{2}:\d{2}(?:[.,]\d{1,3})?\b")
_ONLY_DIGITS = re.compile(r"^\s*\d+\s*$")


class UnsupportedTranscript(ValueError):
    pass


def ext_of(name: str | None) -> str:
    if not name:
        return ""
    return Path(name.strip().lower()).suffix


def strip_nuls(text: str) -> str:
    return (text or "").replace("\x00", "")


def strip_subtitle_markup(text: str) -> str:
    """Drop WEBVTT headers, cue numbers and timestamp lines, keep the spoken lines."""
    lines = []
    for ln in (text or "").splitlines():
        s = ln.strip("\ufeff ").strip()
        if _VTT_HEADER.match(s) or _ONLY_DIGITS.match(s) or _TIMESTAMP.search(s):
            continue
        lines.append(ln)
    return "\n".join(lines).strip()


def pdf_text(data: bytes) -> str:
    from pypdf import PdfReader
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages).strip()


def docx_text(data: bytes) -> str:
    from docx import Document
    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs).strip()


def extract_transcript_text(filename: str | None, data: bytes) -> str:
    """
    Best-effort text extraction by file type for uploaded transcripts.
    Raises UnsupportedTranscript for types we cannot read.
    """
    ext = ext_of(filename)
    if ext not in ALLOWED_EXTS:
        raise UnsupportedTranscript(
            f"Unsupported type: ext={ext or '(none)'}; allowed: {sorted(ALLOWED_EXTS)}"
        )

    if ext == ".pdf":
        text = pdf_text(data)
    elif ext == ".docx":
        text = docx_text(data)
    else:
        text = data.decode("utf-8", errors="ignore")
        if ext in (".vtt", ".srt"):
            text = strip_subtitle_markup(text)

    return strip_nuls(text)
