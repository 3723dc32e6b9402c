# callintel/services/category_classifier.py
"""
Call category classification.

Three stages:
  1. summarize the transcript into a bounded digest (LLM)
  2. score the digest against the playbook catalog with literal signal phrases
  3. let the LLM pick one category among the catalog, seeing the top candidates

Stage 1 failing is fatal (SummaryError). Stage 3 failing is not: it degrades to
the top heuristic candidate at a confidence below the assignment threshold.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..config import settings
from ..models import Category
from . import llm
from .classifier_prompts import ADJUDICATE_SYSTEM, ADJUDICATE_USER, SUMMARY_SYSTEM, SUMMARY_USER

logger = logging.getLogger("classifier")

OTHER_CATEGORY = "Other"


class ClassificationError(RuntimeError):
    pass


class SummaryError(ClassificationError):
    pass


# -------------------- Catalog --------------------
@dataclass(frozen=True)
class Playbook:
    name: str
    intent: str
    timeframe: str
    strong_signals: tuple[str, ...] = ()
    weak_signals: tuple[str, ...] = ()
    description: str = ""


DEFAULT_PLAYBOOKS: List[Playbook] = [
    Playbook(
        "Intro (Diagnostic) Call",
        intent="early-stage relationship and context discovery",
        timeframe="present understanding + immediate next steps",
        strong_signals=("introductions", "initial call", "get to know", "understand your business", "exploratory"),
        weak_signals=("proposal", "pricing", "delivery", "payment", "contract"),
    ),
    Playbook(
        "Problem & Requirements Discovery",
        intent="gather and clarify requirements",
        timeframe="present to near future",
        strong_signals=("requirements", "discovery", "systems", "workflows", "integrations", "constraints", "clarifying"),
        weak_signals=("proposal", "contract", "payment"),
    ),
    Playbook(
        "Ballpark Proposal",
        intent="provide indicative scope and cost ranges",
        timeframe="near future, exploratory",
        strong_signals=("proposal", "estimate", "ballpark", "range", "assumptions", "approximately", "rough"),
        weak_signals=("fixed price", "contract", "signed"),
    ),
    Playbook(
        "Post Solution Discovery Proposal",
        intent="present refined proposal after discovery",
        timeframe="near-term execution readiness",
        strong_signals=("discovery outcomes", "refined", "scope changed", "optimization", "phasing", "roadmap"),
        weak_signals=("procurement", "legal", "contract signing"),
    ),
    Playbook(
        "Decision & Commercial Alignment Call",
        intent="finalize commercial terms",
        timeframe="immediate commitment",
        strong_signals=("payment", "invoicing", "contract", "procurement", "legal", "approval", "ready to sign"),
        weak_signals=("discovery", "proposal explanation"),
    ),
    Playbook(
        "Delivery Health & Feedback Loop",
        intent="maintain relationship health and delivery quality",
        timeframe="past and present",
        strong_signals=("feedback", "retrospective", "collaboration", "communication", "monthly", "quarterly", "check-in"),
        weak_signals=("escalation", "crisis", "contract"),
    ),
    Playbook(
        "Roadmap Planning Session (Quarterly, bi-annual, or annual)",
        intent="strategic prioritization and sequencing",
        timeframe="medium to long-term future",
        strong_signals=("roadmap", "quarterly", "annual", "priorities", "sequencing", "h1", "h2", "strategic"),
        weak_signals=("retrospective", "payment", "contract"),
    ),
    Playbook(
        "Escalation & Recovery Session",
        intent="resolve serious conflict or relationship risk",
        timeframe="immediate crisis resolution",
        strong_signals=("escalation", "problem", "crisis", "dispute", "conflict", "issue", "concern", "urgent"),
        weak_signals=("routine", "planning", "roadmap"),
    ),
    Playbook(
        OTHER_CATEGORY,
        intent="catch-all for calls that fit no other category (admin, scheduling, social, unclear)",
        timeframe="any",
    ),
]

_DEFAULTS_BY_NAME: Dict[str, Playbook] = {p.name: p for p in DEFAULT_PLAYBOOKS}


def _first_line(text: Optional[str]) -> str:
    for ln in (text or "").splitlines():
        s = ln.strip()
        if s:
            return s[:200]
    return ""


def load_catalog(db: Session) -> List[Playbook]:
    """
    Fixed categories as playbooks. Descriptions come from the DB on every call,
    so edits apply to the next classification; signal lists come from the
    built-in playbook with the same name.
    """
    rows = db.query(Category).filter(Category.is_fixed.is_(True)).order_by(Category.id.asc()).all()
    if not rows:
        logger.warning("[classifier] no fixed categories in DB; using built-in playbooks")
        return list(DEFAULT_PLAYBOOKS)

    catalog: List[Playbook] = []
    for row in rows:
        base = _DEFAULTS_BY_NAME.get(row.name)
        catalog.append(Playbook(
            name=row.name,
            intent=base.intent if base else _first_line(row.description),
            timeframe=base.timeframe if base else "",
            strong_signals=base.strong_signals if base else (),
            weak_signals=base.weak_signals if base else (),
            description=row.description or "",
        ))
    return catalog


# -------------------- Results --------------------
@dataclass
class HeuristicScore:
    category: str
    score: int
    matched_signals: List[str] = field(default_factory=list)


@dataclass
class CategoryPrediction:
    predicted_category: str
    confidence: float
    reasoning: List[str]
    top_candidates: List[Dict[str, Any]]
    needs_review: bool

    @property
    def degraded(self) -> bool:
        return False


@dataclass
class AdjudicationDegraded(CategoryPrediction):
    """Heuristic fallback used when the adjudication call or its output failed."""
    error: str = ""

    @property
    def degraded(self) -> bool:
        return True


@dataclass
class ClassificationResult:
    transcript_summary: str
    prediction: CategoryPrediction


def needs_review_for(confidence: float) -> bool:
    return settings.REVIEW_THRESHOLD <= confidence < settings.AUTO_ASSIGN_THRESHOLD


# -------------------- Stage 1: summary --------------------
def generate_transcript_summary(title: str, transcript: str) -> str:
    budget = settings.TRANSCRIPT_CHAR_BUDGET
    user_msg = SUMMARY_USER.format(title=title or "Untitled", transcript=(transcript or "")[:budget])
    try:
        out = llm.complete(SUMMARY_SYSTEM, user_msg, temperature=0.3, max_tokens=1200)
    except llm.LLMError as e:
        logger.error(f"[classifier] summary failed for '{title}': {e}")
        raise SummaryError(f"Transcript summary failed: {e}") from e

    out = (out or "").strip()
    if not out:
        raise SummaryError("Transcript summary failed: empty response from LLM")
    return out


# -------------------- Stage 2: heuristic --------------------
def score_categories(
    title: str,
    summary: str,
    catalog: Optional[Sequence[Playbook]] = None,
    top_n: Optional[int] = None,
) -> List[HeuristicScore]:
    text = f"{title or ''} {summary or ''}".lower()
    scores: List[HeuristicScore] = []

    for pb in (catalog if catalog is not None else DEFAULT_PLAYBOOKS):
        hs = HeuristicScore(category=pb.name, score=0)
        for sig in pb.strong_signals:
            if sig.lower() in text:
                hs.score += settings.STRONG_SIGNAL_WEIGHT
                hs.matched_signals.append(f"+{sig}")
        for sig in pb.weak_signals:
            if sig.lower() in text:
                hs.score -= settings.WEAK_SIGNAL_PENALTY
                hs.matched_signals.append(f"-{sig}")
        scores.append(hs)

    # sorted() is stable: equal scores keep catalog order
    ranked = sorted(scores, key=lambda s: s.score, reverse=True)
    return ranked[: (top_n or settings.TOP_CANDIDATES)]


# -------------------- Stage 3: adjudication --------------------
def _category_definitions(catalog: Sequence[Playbook]) -> str:
    blocks = []
    limit = settings.PLAYBOOK_PROMPT_CHARS
    for pb in catalog:
        lines = [f"{pb.name}:", f"  Intent: {pb.intent}"]
        if pb.timeframe:
            lines.append(f"  Timeframe: {pb.timeframe}")
        if pb.description:
            desc = " ".join(pb.description.split())
            lines.append(f"  Playbook: {desc[:limit]}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _resolve_category(name: Any, catalog: Sequence[Playbook]) -> Optional[str]:
    if not isinstance(name, str) or not name.strip():
        return None
    wanted = " ".join(name.split()).lower()
    for pb in catalog:
        if pb.name == name or pb.name.lower() == wanted:
            return pb.name
    return None


def _candidates_payload(top: Sequence[HeuristicScore]) -> List[Dict[str, Any]]:
    return [{"category": c.category, "score": c.score} for c in top]


def _fallback(top: Sequence[HeuristicScore], error: str) -> AdjudicationDegraded:
    return AdjudicationDegraded(
        predicted_category=top[0].category,
        confidence=settings.FALLBACK_CONFIDENCE,
        reasoning=[f"Fallback to heuristic scoring due to LLM error: {error}"],
        top_candidates=_candidates_payload(top),
        needs_review=True,
        error=error,
    )


def _parse_adjudication(content: str, catalog: Sequence[Playbook],
                        top: Sequence[HeuristicScore]) -> CategoryPrediction:
    if not (content or "").strip():
        raise ValueError("Empty response from LLM")

    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("Invalid LLM response format: not an object")

    raw_category = data.get("category")
    confidence = data.get("confidence")
    reasoning = data.get("reasoning")

    if not isinstance(raw_category, str) or not raw_category.strip():
        raise ValueError("Invalid LLM response format: missing category")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValueError("Invalid LLM response format: confidence is not numeric")
    if not isinstance(reasoning, list):
        raise ValueError("Invalid LLM response format: reasoning is not a list")
    reasons = [r.strip() for r in reasoning if isinstance(r, str) and r.strip()]
    if not reasons:
        raise ValueError("Invalid LLM response format: reasoning is empty")

    conf = float(confidence)
    if not 0.0 <= conf <= 1.0:
        logger.warning(f"[classifier] confidence {conf} out of range, clamping")
        conf = max(0.0, min(1.0, conf))

    category = _resolve_category(raw_category, catalog)
    if category is None:
        category = top[0].category
        logger.warning(f"[classifier] LLM returned invalid category: {raw_category!r}, using top candidate {category!r}")
        reasons.append(f"Model answered '{raw_category}', which is not a catalog category; used top heuristic candidate")

    return CategoryPrediction(
        predicted_category=category,
        confidence=conf,
        reasoning=reasons,
        top_candidates=_candidates_payload(top),
        needs_review=needs_review_for(conf),
    )


def adjudicate(
    title: str,
    summary: str,
    top_candidates: Sequence[HeuristicScore],
    catalog: Optional[Sequence[Playbook]] = None,
) -> CategoryPrediction:
    catalog = catalog if catalog is not None else DEFAULT_PLAYBOOKS
    if not top_candidates:
        raise ClassificationError("No candidate categories: the catalog is empty")

    system_msg = ADJUDICATE_SYSTEM.format(category_definitions=_category_definitions(catalog))
    user_msg = ADJUDICATE_USER.format(
        title=title or "Untitled",
        summary=summary,
        n=len(top_candidates),
        candidates=", ".join(f"{c.category} (heuristic score: {c.score})" for c in top_candidates),
    )

    try:
        content = llm.complete(system_msg, user_msg, json_mode=True, temperature=0.2, max_tokens=500)
        return _parse_adjudication(content, catalog, top_candidates)
    except (llm.LLMError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(f"[classifier] adjudication degraded for '{title}': {e}")
        return _fallback(top_candidates, str(e))


# -------------------- Pipeline --------------------
def classify_call(
    title: str,
    transcript: str,
    catalog: Optional[Sequence[Playbook]] = None,
) -> ClassificationResult:
    catalog = list(catalog) if catalog is not None else list(DEFAULT_PLAYBOOKS)

    summary = generate_transcript_summary(title, transcript)
    top = score_categories(title, summary, catalog)
    prediction = adjudicate(title, summary, top, catalog)

    logger.info(
        f"[classifier] '{title}' -> {prediction.predicted_category} "
        f"conf={prediction.confidence:.2f} review={prediction.needs_review} degraded={prediction.degraded}"
    )
    return ClassificationResult(transcript_summary=summary, prediction=prediction)
