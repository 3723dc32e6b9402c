# tests/test_recategorize.py
from datetime import datetime

from callintel.models import Call, Category
from callintel.services.recategorize import recategorize_all


def _cat(db, name):
    return db.query(Category).filter(Category.name == name).one()


def _call(db, title, **fields):
    call = Call(title=title, call_date=datetime(2025, 3, 4, 10), transcript="Alice: hello", **fields)
    db.add(call)
    db.commit()
    db.refresh(call)
    return call


def test_overridden_calls_keep_their_category(db, fake_llm):
    other = _cat(db, "Other")
    ballpark = _cat(db, "Ballpark Proposal")
    overridden_at = datetime(2025, 3, 5, 9, 0)

    kept = _call(
        db, "Overridden",
        predicted_category_id=ballpark.id, category_id=other.id, category_final_id=other.id,
        was_overridden=True, overridden_at=overridden_at, overridden_by=42, needs_review=False,
    )
    fresh = _call(db, "Fresh", predicted_category_id=ballpark.id, category_id=ballpark.id,
                  category_final_id=ballpark.id, needs_review=True)

    fake_llm.adjudication = {"category": "Escalation & Recovery Session", "confidence": 0.9, "reasoning": ["Crisis"]}
    result = recategorize_all(db)

    assert result.total == 2 and result.success == 2 and result.failed == 0
    escalation = _cat(db, "Escalation & Recovery Session")

    db.refresh(kept)
    assert kept.predicted_category_id == escalation.id
    assert kept.confidence_score == 0.9
    assert kept.transcript_summary == fake_llm.summary
    assert kept.category_final_id == other.id
    assert kept.category_id == other.id
    assert kept.needs_review is False
    assert kept.overridden_at == overridden_at and kept.overridden_by == 42

    db.refresh(fresh)
    assert fresh.category_final_id == escalation.id
    assert fresh.needs_review is False


def test_failures_are_reported_per_call(db, fake_llm):
    _call(db, "First")
    _call(db, "Second")
    fake_llm.fail = {"summary"}

    result = recategorize_all(db)
    assert result.total == 2
    assert result.failed == 2
    assert result.errors[0].startswith("First: Transcript summary failed")


def test_calls_without_transcript_are_skipped(db, fake_llm):
    _call(db, "With text")
    db.add(Call(title="Empty", call_date=datetime(2025, 3, 4), transcript=""))
    db.commit()
    assert recategorize_all(db).total == 1
