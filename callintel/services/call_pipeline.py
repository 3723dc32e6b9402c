# callintel/services/call_pipeline.py
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..config import settings
from ..models import Call
from ..repos.calls import (
    DuplicateCallError, apply_analysis, apply_prediction, create_call, find_duplicate,
)
from .call_analysis import AnalysisConfig, analyze_call
from .category_classifier import Playbook, classify_call, load_catalog
from .domain_classifier import SOURCE_UNKNOWN

logger = logging.getLogger("pipeline")


@dataclass
class NewCall:
    title: str
    call_date: datetime
    transcript: str
    organizer: Optional[str] = None
    participants: List[str] = field(default_factory=list)
    user_id: Optional[int] = None
    is_external: Optional[bool] = None
    external_domains: List[str] = field(default_factory=list)
    classification_source: str = SOURCE_UNKNOWN
    meet_code: Optional[str] = None
    drive_file_id: Optional[int] = None
    calendar_event_id: Optional[int] = None


@dataclass
class BatchResult:
    total: int = 0
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def fail(self, label: str, error: Any) -> None:
        self.failed += 1
        self.errors.append(f"{label}: {error}")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def pause(seconds: Optional[float] = None) -> None:
    """Spacing between items of a batch so the LLM rate limits hold."""
    delay = settings.BATCH_DELAY_S if seconds is None else seconds
    if delay > 0:
        time.sleep(delay)


def analyze_and_classify(
    db: Session,
    call: Call,
    config: AnalysisConfig,
    catalog: Optional[Sequence[Playbook]] = None,
) -> Call:
    """Run quality analysis and category classification on a (possibly unsaved) call."""
    analysis = analyze_call(call.transcript, config)
    apply_analysis(call, analysis)

    result = classify_call(call.title, call.transcript, catalog if catalog is not None else load_catalog(db))
    apply_prediction(db, call, result)
    return call


def ingest_call(
    db: Session,
    new: NewCall,
    config: AnalysisConfig,
    catalog: Optional[Sequence[Playbook]] = None,
) -> Call:
    """
    Analyze, classify and persist a new call.

    Raises DuplicateCallError before spending any LLM call when the meeting
    (meet code + date) already has a call.
    """
    if find_duplicate(db, new.meet_code, new.call_date) is not None:
        raise DuplicateCallError(f"Call already exists for meet code {new.meet_code}")

    call = Call(
        user_id=new.user_id,
        title=new.title,
        call_date=new.call_date,
        organizer=new.organizer,
        participants=list(new.participants),
        transcript=new.transcript,
        is_external=new.is_external,
        external_domains=list(new.external_domains),
        classification_source=new.classification_source,
        meet_code=new.meet_code,
        drive_file_id=new.drive_file_id,
        calendar_event_id=new.calendar_event_id,
    )
    analyze_and_classify(db, call, config, catalog)
    call = create_call(db, call)
    logger.info(f"[pipeline] stored call {call.id} '{call.title}'")
    return call
