# callintel/services/call_analysis.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models import Prompt, SENTIMENTS
from . import llm
from .classifier_prompts import (
    ANALYSIS_SYSTEM, ANALYSIS_USER, PARTICIPANTS_SYSTEM, PARTICIPANTS_USER,
)

logger = logging.getLogger("analysis")


class AnalysisError(RuntimeError):
    pass


class NoActivePrompt(RuntimeError):
    pass


@dataclass(frozen=True)
class AnalysisConfig:
    """Prompt pair handed to the analysis; callers fetch it, nothing here reads global state."""
    analysis_prompt: str
    rating_prompt: str
    prompt_id: Optional[int] = None


@dataclass
class CallAnalysis:
    summary: str
    rating: Optional[float]
    sentiment: str
    strengths: List[str] = field(default_factory=list)
    areas_for_improvement: List[str] = field(default_factory=list)


def config_from_prompt(prompt: Prompt) -> AnalysisConfig:
    return AnalysisConfig(
        analysis_prompt=prompt.analysis_prompt,
        rating_prompt=prompt.rating_prompt,
        prompt_id=prompt.id,
    )


def get_active_analysis_config(db: Session) -> AnalysisConfig:
    prompt = db.query(Prompt).filter(Prompt.is_active.is_(True)).first()
    if not prompt:
        raise NoActivePrompt("No active prompt found. Please create and activate a prompt first.")
    return config_from_prompt(prompt)


# -------------------- Normalization --------------------
def _str_list(value, max_n: int = 6) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()][:max_n]


def _rating(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        r = float(value)
    except (TypeError, ValueError):
        return None
    return round(max(1.0, min(10.0, r)), 1)


def _sentiment(value) -> str:
    s = (value or "").strip().capitalize() if isinstance(value, str) else ""
    return s if s in SENTIMENTS else "Neutral"


# -------------------- Public --------------------
def analyze_call(transcript: str, config: AnalysisConfig) -> CallAnalysis:
    user_msg = ANALYSIS_USER.format(
        analysis_prompt=config.analysis_prompt,
        rating_prompt=config.rating_prompt,
        transcript=(transcript or "")[: settings.TRANSCRIPT_CHAR_BUDGET * 2],
    )
    try:
        content = llm.complete(ANALYSIS_SYSTEM, user_msg, json_mode=True, temperature=0.7)
        data = json.loads(content or "")
    except (llm.LLMError, ValueError) as e:
        raise AnalysisError(f"Call analysis failed: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisError("Call analysis failed: response is not an object")

    return CallAnalysis(
        summary=(data.get("summary") or "").strip() if isinstance(data.get("summary"), str) else "",
        rating=_rating(data.get("rating")),
        sentiment=_sentiment(data.get("sentiment")),
        strengths=_str_list(data.get("strengths")),
        areas_for_improvement=_str_list(data.get("areasForImprovement") or data.get("areas_for_improvement")),
    )


def extract_participants_with_ai(text: str) -> List[str]:
    """Last-resort participant extraction. Never raises; [] on any failure."""
    try:
        content = llm.complete(
            PARTICIPANTS_SYSTEM,
            PARTICIPANTS_USER.format(transcript=(text or "")[:2000]),
            json_mode=True,
            temperature=0,
            max_tokens=200,
        )
        data = json.loads(content or "{}")
    except (llm.LLMError, ValueError) as e:
        logger.warning(f"[analysis] AI participant extraction failed: {e}")
        return []

    names = data.get("participants") if isinstance(data, dict) else data
    return _str_list(names, max_n=30)
