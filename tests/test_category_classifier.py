# tests/test_category_classifier.py
import pytest

from callintel.models import Call, Category
from callintel.repos.calls import apply_prediction
from callintel.services.category_classifier import (
    DEFAULT_PLAYBOOKS, AdjudicationDegraded, ClassificationError, HeuristicScore, SummaryError,
    adjudicate, classify_call, load_catalog, score_categories,
)
from callintel.services.confidence_policy import AUTO_ASSIGNED, UNASSIGNED
from callintel.utils.dates import now_utc

TITLE = "Q3 Budget Proposal Review"


def test_heuristic_ranks_signal_matches_first():
    top = score_categories(TITLE, "We shared a rough estimate and a price range.")
    assert top[0].category == "Ballpark Proposal"
    assert top[0].score == 8  # proposal, rough, estimate, range
    assert "+estimate" in top[0].matched_signals
    assert len(top) == 3


def test_heuristic_ties_keep_catalog_order():
    top = score_categories("", "")
    assert [t.category for t in top] == [p.name for p in DEFAULT_PLAYBOOKS[:3]]
    assert all(t.score == 0 for t in top)


def test_weak_signals_subtract():
    scores = {s.category: s for s in score_categories("contract signing", "", top_n=len(DEFAULT_PLAYBOOKS))}
    decision = scores["Decision & Commercial Alignment Call"]
    assert decision.score == 2
    intro = scores["Intro (Diagnostic) Call"]
    assert intro.score == -1
    assert intro.matched_signals == ["-contract"]


def test_q3_budget_end_to_end(fake_llm):
    result = classify_call(TITLE, "Alice: here is our proposal ...")
    pred = result.prediction
    assert result.transcript_summary == fake_llm.summary
    assert pred.predicted_category == "Ballpark Proposal"
    assert pred.confidence == pytest.approx(0.82)
    assert pred.needs_review is False
    assert not pred.degraded
    assert pred.top_candidates[0] == {"category": "Ballpark Proposal", "score": 8}
    assert fake_llm.count("summary") == 1 and fake_llm.count("adjudication") == 1


def test_q3_budget_with_pending_discovery(fake_llm):
    fake_llm.summary = (
        "The client asked for a ballpark estimate and rough numbers before committing; "
        "discovery is still pending."
    )
    result = classify_call(TITLE, "Alice: here is our proposal ...")
    pred = result.prediction

    top = {c["category"]: c["score"] for c in pred.top_candidates}
    assert pred.top_candidates[0] == {"category": "Ballpark Proposal", "score": 8}
    assert top["Problem & Requirements Discovery"] == 1  # +discovery, -proposal
    assert len(pred.top_candidates) == 3
    assert pred.predicted_category == "Ballpark Proposal"
    assert pred.confidence >= 0.75

    _, _, adjudication_prompt = fake_llm.calls[-1]
    assert "discovery is still pending" in adjudication_prompt


def test_q3_budget_is_auto_assigned(db, fake_llm):
    call = Call(title=TITLE, call_date=now_utc(), transcript="Alice: here is our proposal ...")
    assignment = apply_prediction(db, call, classify_call(TITLE, call.transcript, load_catalog(db)))
    ballpark = db.query(Category).filter(Category.name == "Ballpark Proposal").one()
    assert assignment.outcome == AUTO_ASSIGNED
    assert call.predicted_category_id == call.category_final_id == call.category_id == ballpark.id
    assert call.category_state.assigned
    assert call.reasoning_list == fake_llm.adjudication["reasoning"]


def test_low_confidence_leaves_call_unassigned(db, fake_llm):
    fake_llm.adjudication = {"category": "Other", "confidence": 0.3, "reasoning": ["Unclear purpose"]}
    call = Call(title="Chat", call_date=now_utc(), transcript="hello")
    assignment = apply_prediction(db, call, classify_call("Chat", "hello", load_catalog(db)))
    assert assignment.outcome == UNASSIGNED
    assert call.predicted_category_id is not None
    assert call.category_final_id is None and call.category_id is None
    assert call.needs_review is False


def test_invalid_category_falls_back_to_top_candidate(fake_llm):
    fake_llm.adjudication = {"category": "Sales Pitch", "confidence": 0.9, "reasoning": ["Looks like a pitch"]}
    pred = classify_call(TITLE, "transcript").prediction
    assert pred.predicted_category == "Ballpark Proposal"
    assert pred.confidence == pytest.approx(0.9)
    assert len(pred.reasoning) == 2
    assert "Sales Pitch" in pred.reasoning[-1]


def test_category_names_match_case_insensitively(fake_llm):
    fake_llm.adjudication = {"category": "escalation & recovery session", "confidence": 0.7, "reasoning": ["x"]}
    pred = classify_call("Weekly", "transcript").prediction
    assert pred.predicted_category == "Escalation & Recovery Session"
    assert pred.needs_review is True


def test_out_of_range_confidence_is_clamped(fake_llm):
    fake_llm.adjudication = {"category": "Other", "confidence": 1.7, "reasoning": ["x"]}
    assert classify_call("t", "x").prediction.confidence == 1.0


@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        '{"category": "Other", "confidence": "high", "reasoning": ["x"]}',
        '{"category": "Other", "confidence": 0.9, "reasoning": []}',
        '["Other"]',
        "",
    ],
)
def test_bad_adjudication_output_degrades(fake_llm, content):
    fake_llm.adjudication = content
    pred = classify_call(TITLE, "transcript").prediction
    assert isinstance(pred, AdjudicationDegraded)
    assert pred.degraded
    assert pred.predicted_category == "Ballpark Proposal"
    assert pred.confidence == pytest.approx(0.45)
    assert pred.needs_review is True
    assert pred.reasoning[0].startswith("Fallback to heuristic scoring")


def test_adjudication_llm_error_degrades(fake_llm):
    fake_llm.fail = {"adjudication"}
    pred = classify_call(TITLE, "transcript").prediction
    assert isinstance(pred, AdjudicationDegraded)
    assert "adjudication unavailable" in pred.error


def test_summary_failure_is_fatal(fake_llm):
    fake_llm.fail = {"summary"}
    with pytest.raises(SummaryError):
        classify_call(TITLE, "transcript")
    assert fake_llm.count("adjudication") == 0


def test_empty_summary_is_fatal(fake_llm):
    fake_llm.summary = "   "
    with pytest.raises(SummaryError):
        classify_call(TITLE, "transcript")


def test_adjudicate_needs_candidates(fake_llm):
    with pytest.raises(ClassificationError):
        adjudicate("t", "s", [])


def test_catalog_reads_fixed_categories_from_db(db, fake_llm):
    db.add(Category(name="Team Lunch", description="Food", is_fixed=False))
    ballpark = db.query(Category).filter(Category.name == "Ballpark Proposal").one()
    ballpark.description = "Edited playbook: indicative pricing talks"
    db.commit()

    catalog = load_catalog(db)
    names = [p.name for p in catalog]
    assert len(catalog) == 9
    assert "Team Lunch" not in names
    assert names[-1] == "Other"

    adjudicate(TITLE, "summary", [HeuristicScore("Ballpark Proposal", 2)], catalog)
    _, system_prompt, _ = fake_llm.calls[-1]
    assert "Edited playbook: indicative pricing talks" in system_prompt
    assert "Team Lunch" not in system_prompt


def test_prediction_naming_non_fixed_category_fails(db):
    from callintel.services.category_classifier import CategoryPrediction, ClassificationResult

    result = ClassificationResult(
        transcript_summary="s",
        prediction=CategoryPrediction("Team Lunch", 0.9, ["x"], [], False),
    )
    call = Call(title="t", call_date=now_utc(), transcript="x")
    with pytest.raises(ClassificationError):
        apply_prediction(db, call, result)
