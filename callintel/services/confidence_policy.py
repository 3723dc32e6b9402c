# callintel/services/confidence_policy.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import settings

AUTO_ASSIGNED = "auto_assigned"
NEEDS_REVIEW = "needs_review"
UNASSIGNED = "unassigned"
# prediction refreshed, human choice kept
OVERRIDDEN = "overridden"


@dataclass(frozen=True)
class Assignment:
    category_id: Optional[int]
    category_final_id: Optional[int]
    outcome: str

    @property
    def assigned(self) -> bool:
        return self.category_final_id is not None


def decide_assignment(
    confidence: float,
    predicted_category_id: int,
    *,
    auto_threshold: Optional[float] = None,
    review_threshold: Optional[float] = None,
) -> Assignment:
    """
    Map a prediction's confidence to the working/final category.

    Only decides assignment. The review flag is the classifier's own output
    and is stored as-is; the default thresholds coincide with it.
    """
    auto_t = settings.AUTO_ASSIGN_THRESHOLD if auto_threshold is None else auto_threshold
    review_t = settings.REVIEW_THRESHOLD if review_threshold is None else review_threshold

    if confidence >= auto_t:
        return Assignment(predicted_category_id, predicted_category_id, AUTO_ASSIGNED)
    if confidence >= review_t:
        return Assignment(predicted_category_id, predicted_category_id, NEEDS_REVIEW)
    return Assignment(None, None, UNASSIGNED)
