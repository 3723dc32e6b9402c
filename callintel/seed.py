# callintel/seed.py
import logging

from sqlalchemy.orm import Session

from .models import Category, Prompt

logger = logging.getLogger("seed")

# name, color, playbook description
FIXED_CATEGORIES = [
    (
        "Intro (Diagnostic) Call",
        "#3b82f6",
        "Purpose: early-stage relationship and context discovery.\n"
        "Typical signals: introductions, company background, understanding the client's business, "
        "exploratory questions.\n"
        "Not this if: pricing, contracts or delivery are discussed in detail.",
    ),
    (
        "Problem & Requirements Discovery",
        "#8b5cf6",
        "Purpose: gather and clarify requirements.\n"
        "Typical signals: current systems, workflows, integrations, constraints, clarifying questions.\n"
        "Not this if: the call is mostly about a proposal or contract.",
    ),
    (
        "Ballpark Proposal",
        "#f59e0b",
        "Purpose: provide indicative scope and cost ranges.\n"
        "Typical signals: estimates, ranges, assumptions, rough timelines.\n"
        "Not this if: a fixed price or signed contract is the topic.",
    ),
    (
        "Post Solution Discovery Proposal",
        "#f97316",
        "Purpose: present a refined proposal after discovery.\n"
        "Typical signals: discovery outcomes, refined or changed scope, phasing, optimization.\n"
        "Not this if: procurement or legal review dominates.",
    ),
    (
        "Decision & Commercial Alignment Call",
        "#10b981",
        "Purpose: finalize commercial terms.\n"
        "Typical signals: payment, invoicing, contract, procurement, legal, approvals, readiness to sign.\n"
        "Not this if: requirements are still being discovered.",
    ),
    (
        "Delivery Health & Feedback Loop",
        "#06b6d4",
        "Purpose: maintain relationship health and delivery quality.\n"
        "Typical signals: feedback, retrospectives, collaboration and communication check-ins.\n"
        "Not this if: there is an active escalation or crisis.",
    ),
    (
        "Roadmap Planning Session (Quarterly, bi-annual, or annual)",
        "#6366f1",
        "Purpose: strategic prioritization and sequencing.\n"
        "Typical signals: roadmap, quarterly or annual priorities, H1/H2 plans, sequencing.\n"
        "Not this if: the call looks back at delivery rather than forward.",
    ),
    (
        "Escalation & Recovery Session",
        "#ef4444",
        "Purpose: resolve serious conflict or relationship risk.\n"
        "Typical signals: escalation, crisis, dispute, urgent concerns, recovery plans.\n"
        "Not this if: issues are routine and handled in a normal check-in.",
    ),
    (
        "Other",
        "#6b7280",
        "Purpose: anything that fits no other category.\n"
        "Typical signals: internal admin, scheduling, social calls, unclear purpose.",
    ),
]

DEFAULT_PROMPT_NAME = "Default call review"
DEFAULT_ANALYSIS_PROMPT = (
    "Analyze this business call. Summarize what was discussed, how well the host "
    "led the conversation and how the client responded."
)
DEFAULT_RATING_PROMPT = (
    "Rate the call from 1 to 10 on clarity, listening, handling of objections "
    "and agreement on next steps."
)


def seed_fixed_categories(db: Session) -> int:
    """Create the fixed catalog or re-mark existing rows as fixed. Descriptions edited in the UI are kept."""
    created = 0
    for name, color, description in FIXED_CATEGORIES:
        row = db.query(Category).filter(Category.name == name).first()
        if row is None:
            db.add(Category(name=name, color=color, description=description, is_fixed=True))
            created += 1
        elif not row.is_fixed:
            row.is_fixed = True
    db.commit()
    if created:
        logger.info(f"[seed] created {created} fixed categories")
    return created


def seed_default_prompt(db: Session) -> None:
    if db.query(Prompt).count():
        return
    db.add(Prompt(
        name=DEFAULT_PROMPT_NAME,
        analysis_prompt=DEFAULT_ANALYSIS_PROMPT,
        rating_prompt=DEFAULT_RATING_PROMPT,
        is_active=True,
    ))
    db.commit()
    logger.info("[seed] created default prompt")
