# tests/test_confidence_policy.py
import pytest

from callintel.services.category_classifier import needs_review_for
from callintel.services.confidence_policy import (
    AUTO_ASSIGNED, NEEDS_REVIEW, UNASSIGNED, decide_assignment,
)


@pytest.mark.parametrize(
    "confidence,outcome,assigned",
    [
        (0.95, AUTO_ASSIGNED, True),
        (0.75, AUTO_ASSIGNED, True),
        (0.74, NEEDS_REVIEW, True),
        (0.50, NEEDS_REVIEW, True),
        (0.49, UNASSIGNED, False),
        (0.0, UNASSIGNED, False),
    ],
)
def test_thresholds(confidence, outcome, assigned):
    a = decide_assignment(confidence, 7)
    assert a.outcome == outcome
    assert a.assigned is assigned
    if assigned:
        assert a.category_id == a.category_final_id == 7
    else:
        assert a.category_id is None and a.category_final_id is None


def test_review_flag_matches_middle_band():
    assert needs_review_for(0.6)
    assert needs_review_for(0.5)
    assert not needs_review_for(0.75)
    assert not needs_review_for(0.3)


def test_thresholds_are_overridable():
    a = decide_assignment(0.6, 3, auto_threshold=0.55, review_threshold=0.4)
    assert a.outcome == AUTO_ASSIGNED
    b = decide_assignment(0.45, 3, auto_threshold=0.55, review_threshold=0.4)
    assert b.outcome == NEEDS_REVIEW
