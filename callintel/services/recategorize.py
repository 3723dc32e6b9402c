# callintel/services/recategorize.py
import logging

from sqlalchemy.orm import Session

from ..models import Call
from ..repos.calls import apply_prediction
from .call_pipeline import BatchResult, pause
from .category_classifier import classify_call, load_catalog

logger = logging.getLogger("recategorize")


def recategorize_all(db: Session) -> BatchResult:
    """
    Re-run classification for every call with a transcript.
    Overridden calls get a fresh prediction but keep their confirmed category.
    """
    calls = (
        db.query(Call)
        .filter(Call.transcript.isnot(None), Call.transcript != "")
        .order_by(Call.id.asc())
        .all()
    )
    result = BatchResult(total=len(calls))

    for i, call in enumerate(calls):
        label = call.title
        try:
            classification = classify_call(call.title, call.transcript, load_catalog(db))
            apply_prediction(db, call, classification)
            db.commit()
            result.success += 1
        except Exception as e:
            db.rollback()
            logger.error(f"[recategorize] call {call.id} '{label}' failed: {e}")
            result.fail(label, e)
        if i < len(calls) - 1:
            pause()

    logger.info(f"[recategorize] {result.success}/{result.total} calls reclassified")
    return result
