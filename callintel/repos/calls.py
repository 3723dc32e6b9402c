# callintel/repos/calls.py
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import CalendarEvent, Call, Category
from ..services.call_analysis import CallAnalysis
from ..services.category_classifier import ClassificationError, ClassificationResult
from ..services.confidence_policy import OVERRIDDEN, Assignment, decide_assignment
from ..utils.dates import now_utc


class DuplicateCallError(RuntimeError):
    pass


class InvalidCategoryError(ValueError):
    pass


def get_fixed_category(db: Session, name: str) -> Optional[Category]:
    return (
        db.query(Category)
        .filter(Category.name == name, Category.is_fixed.is_(True))
        .first()
    )


def find_duplicate(db: Session, meet_code: Optional[str], call_date: datetime) -> Optional[Call]:
    if not meet_code:
        return None
    return (
        db.query(Call)
        .filter(Call.meet_code == meet_code, Call.call_date == call_date)
        .first()
    )


def apply_analysis(call: Call, analysis: CallAnalysis) -> None:
    call.ai_analysis = analysis.summary
    call.ai_rating = analysis.rating
    call.ai_sentiment = analysis.sentiment
    call.ai_strengths = list(analysis.strengths)
    call.ai_areas_for_improvement = list(analysis.areas_for_improvement)


def apply_prediction(db: Session, call: Call, result: ClassificationResult) -> Assignment:
    """
    Store a classification on the call and derive its working/final category.
    An overridden call keeps its human choice; only the prediction is refreshed.
    """
    pred = result.prediction
    category = get_fixed_category(db, pred.predicted_category)
    if category is None:
        raise ClassificationError(f"Invalid predicted category: {pred.predicted_category}")

    call.transcript_summary = result.transcript_summary
    call.predicted_category_id = category.id
    call.confidence_score = pred.confidence
    call.category_reasoning = "\n".join(pred.reasoning)
    call.top_candidates = list(pred.top_candidates)

    if call.was_overridden:
        return Assignment(call.category_id, call.category_final_id, OVERRIDDEN)

    assignment = decide_assignment(pred.confidence, category.id)
    call.category_id = assignment.category_id
    call.category_final_id = assignment.category_final_id
    call.needs_review = pred.needs_review
    return assignment


def create_call(db: Session, call: Call) -> Call:
    if find_duplicate(db, call.meet_code, call.call_date) is not None:
        raise DuplicateCallError(f"Call already exists for meet code {call.meet_code}")
    db.add(call)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race against a concurrent import of the same meeting
        db.rollback()
        raise DuplicateCallError(f"Call already exists for meet code {call.meet_code}") from e
    db.refresh(call)
    return call


def override_category(db: Session, call: Call, category_id: int, actor_id: Optional[int]) -> Call:
    category = db.get(Category, category_id)
    if category is None or not category.is_fixed:
        raise InvalidCategoryError("Invalid category. Only fixed categories can be assigned.")

    call.category_final_id = category.id
    call.category_id = category.id
    call.was_overridden = True
    call.overridden_at = now_utc()
    call.overridden_by = actor_id
    call.needs_review = False
    db.commit()
    db.refresh(call)
    return call


def delete_call(db: Session, call: Call) -> None:
    """Remove a call and free the calendar events that imported it."""
    (
        db.query(CalendarEvent)
        .filter(CalendarEvent.imported_call_id == call.id)
        .update({"imported": False, "imported_call_id": None}, synchronize_session=False)
    )
    db.delete(call)
    db.commit()
