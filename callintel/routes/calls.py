# callintel/routes/calls.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_optional_user
from ..config import settings
from ..db import get_db
from ..models import Call, Category, User, SENTIMENTS
from ..repos.calls import (
    DuplicateCallError, InvalidCategoryError, apply_analysis, apply_prediction, delete_call,
    override_category,
)
from ..schemas import CallCreate, CallListItem, CallOut, OverrideIn
from ..services.call_analysis import (
    AnalysisConfig, AnalysisError, analyze_call, extract_participants_with_ai,
)
from ..services.call_pipeline import NewCall, ingest_call
from ..services.calendar_match import find_and_classify_calendar_event
from ..services.category_classifier import ClassificationError, classify_call, load_catalog
from ..services.domain_classifier import SOURCE_MANUAL, SOURCE_UNKNOWN
from ..utils.dates import as_utc_naive, now_utc
from ..utils.io import UnsupportedTranscript, extract_transcript_text
from ..utils.transcript import clean_file_name, extract_call_date, parse_participants
from .google_common import get_analysis_config, get_optional_calendar_client

logger = logging.getLogger("calls")

router = APIRouter(prefix="/api/calls", tags=["calls"])
dashboard_router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


# ---------- Helpers ----------
def _get_call(db: Session, call_id: int) -> Call:
    call = db.get(Call, call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


def _ingest(db: Session, new: NewCall, config: AnalysisConfig) -> Call:
    try:
        return ingest_call(db, new, config)
    except DuplicateCallError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (AnalysisError, ClassificationError) as e:
        logger.error(f"[calls] processing '{new.title}' failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


# ---------- Calls ----------
@router.get("", response_model=list[CallListItem])
def list_calls(
    category_id: Optional[int] = None,
    needs_review: Optional[bool] = None,
    is_external: Optional[str] = Query(None, pattern="^(true|false|unknown)$"),
    q: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    query = db.query(Call)
    if category_id is not None:
        query = query.filter(Call.category_id == category_id)
    if needs_review is not None:
        query = query.filter(Call.needs_review.is_(needs_review))
    if is_external == "unknown":
        query = query.filter(Call.is_external.is_(None))
    elif is_external is not None:
        query = query.filter(Call.is_external.is_(is_external == "true"))
    if q:
        query = query.filter(Call.title.ilike(f"%{q.strip()}%"))
    return query.order_by(Call.call_date.desc(), Call.id.desc()).offset(offset).limit(limit).all()


@router.post("", response_model=CallOut, status_code=201)
def create_call(
    body: CallCreate,
    user: Optional[User] = Depends(get_optional_user),
    config: AnalysisConfig = Depends(get_analysis_config),
    db: Session = Depends(get_db),
):
    new = NewCall(
        title=body.title.strip(),
        call_date=as_utc_naive(body.call_date) if body.call_date else now_utc(),
        transcript=body.transcript,
        organizer=body.organizer,
        participants=body.participants or parse_participants(body.transcript),
        user_id=user.id if user else None,
        is_external=body.is_external,
        classification_source=SOURCE_MANUAL if body.is_external is not None else SOURCE_UNKNOWN,
        meet_code=body.meet_code,
    )
    return _ingest(db, new, config)


@router.post("/upload", response_model=CallOut, status_code=201)
def upload_call(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    config: AnalysisConfig = Depends(get_analysis_config),
    calendar=Depends(get_optional_calendar_client),
    db: Session = Depends(get_db),
):
    # must stay a plain def: ingest blocks on LLM and Google I/O
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        text = extract_transcript_text(file.filename, data)
    except UnsupportedTranscript as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")
    if not text.strip():
        raise HTTPException(status_code=400, detail="No text found in file")

    new = NewCall(
        title=clean_file_name(file.filename or ""),
        call_date=extract_call_date(text, now_utc()),
        transcript=text,
        organizer=user.google_name or user.name or user.email or "Unknown",
        participants=parse_participants(text) or extract_participants_with_ai(text),
        user_id=user.id,
    )

    if calendar is not None:
        matched = find_and_classify_calendar_event(calendar, new.call_date)
        if matched is not None:
            new.meet_code = matched.event.meet_code
            new.call_date = matched.event.start_time
            if matched.classification is not None:
                new.is_external = matched.classification.is_external
                new.external_domains = list(matched.classification.external_domains)
                new.classification_source = matched.classification.classification_source

    call = _ingest(db, new, config)
    logger.info(f"[calls] uploaded {file.filename} as call {call.id}")
    return call


@router.get("/{call_id}", response_model=CallOut)
def get_call(call_id: int, db: Session = Depends(get_db)):
    return _get_call(db, call_id)


@router.delete("/{call_id}", status_code=204)
def remove_call(call_id: int, db: Session = Depends(get_db)):
    delete_call(db, _get_call(db, call_id))


@router.post("/{call_id}/analyze", response_model=CallOut)
def reanalyze_call(
    call_id: int,
    config: AnalysisConfig = Depends(get_analysis_config),
    db: Session = Depends(get_db),
):
    call = _get_call(db, call_id)
    try:
        apply_analysis(call, analyze_call(call.transcript, config))
    except AnalysisError as e:
        raise HTTPException(status_code=502, detail=str(e))
    db.commit()
    db.refresh(call)
    return call


@router.post("/{call_id}/classify", response_model=CallOut)
def reclassify_call(call_id: int, db: Session = Depends(get_db)):
    call = _get_call(db, call_id)
    try:
        result = classify_call(call.title, call.transcript, load_catalog(db))
        apply_prediction(db, call, result)
    except ClassificationError as e:
        db.rollback()
        raise HTTPException(status_code=502, detail=str(e))
    db.commit()
    db.refresh(call)
    return call


@router.post("/{call_id}/override-category", response_model=CallOut)
def override_call_category(
    call_id: int,
    body: OverrideIn,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    call = _get_call(db, call_id)
    try:
        return override_category(db, call, body.category_id, user.id if user else None)
    except InvalidCategoryError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------- Dashboard ----------
@dashboard_router.get("/stats")
def dashboard_stats(db: Session = Depends(get_db)):
    total = db.query(func.count(Call.id)).scalar() or 0
    avg_rating = db.query(func.avg(Call.ai_rating)).scalar()

    sentiment = {s: 0 for s in SENTIMENTS}
    for value, n in db.query(Call.ai_sentiment, func.count(Call.id)).group_by(Call.ai_sentiment):
        if value in sentiment:
            sentiment[value] = n

    by_category = [
        {"category_id": cid, "name": name, "color": color, "count": n}
        for cid, name, color, n in (
            db.query(Category.id, Category.name, Category.color, func.count(Call.id))
            .join(Call, Call.category_id == Category.id)
            .group_by(Category.id, Category.name, Category.color)
            .order_by(func.count(Call.id).desc())
        )
    ]

    def _count(*criteria) -> int:
        return db.query(func.count(Call.id)).filter(*criteria).scalar() or 0

    return {
        "total_calls": total,
        "average_rating": round(float(avg_rating), 1) if avg_rating is not None else None,
        "sentiment": sentiment,
        "categories": by_category,
        "needs_review": _count(Call.needs_review.is_(True)),
        "unassigned": _count(Call.category_final_id.is_(None)),
        "overridden": _count(Call.was_overridden.is_(True)),
        "external": _count(Call.is_external.is_(True)),
        "internal": _count(Call.is_external.is_(False)),
        "unknown": _count(Call.is_external.is_(None)),
    }
