# callintel/routes/prompts.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Call, Prompt
from ..repos.calls import apply_analysis
from ..schemas import PromptIn, PromptOut, PromptUpdate
from ..services.call_analysis import analyze_call, config_from_prompt
from ..services.call_pipeline import BatchResult, pause

logger = logging.getLogger("prompts")

router = APIRouter(prefix="/api/prompts", tags=["prompts"])


def _get_prompt(db: Session, prompt_id: int) -> Prompt:
    prompt = db.get(Prompt, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt


def _deactivate_others(db: Session, keep_id: int) -> None:
    (
        db.query(Prompt)
        .filter(Prompt.id != keep_id, Prompt.is_active.is_(True))
        .update({"is_active": False}, synchronize_session=False)
    )


@router.get("", response_model=list[PromptOut])
def list_prompts(db: Session = Depends(get_db)):
    return db.query(Prompt).order_by(Prompt.created_at.desc(), Prompt.id.desc()).all()


@router.post("", response_model=PromptOut, status_code=201)
def create_prompt(body: PromptIn, db: Session = Depends(get_db)):
    prompt = Prompt(
        name=body.name.strip(),
        analysis_prompt=body.analysis_prompt,
        rating_prompt=body.rating_prompt,
        is_active=body.is_active,
    )
    db.add(prompt)
    db.flush()
    if prompt.is_active:
        _deactivate_others(db, prompt.id)
    db.commit()
    db.refresh(prompt)
    return prompt


@router.get("/{prompt_id}", response_model=PromptOut)
def get_prompt(prompt_id: int, db: Session = Depends(get_db)):
    return _get_prompt(db, prompt_id)


@router.put("/{prompt_id}", response_model=PromptOut)
def update_prompt(prompt_id: int, body: PromptUpdate, db: Session = Depends(get_db)):
    prompt = _get_prompt(db, prompt_id)
    for key, value in body.model_dump(exclude_none=True).items():
        setattr(prompt, key, value)
    db.commit()
    db.refresh(prompt)
    return prompt


@router.delete("/{prompt_id}", status_code=204)
def delete_prompt(prompt_id: int, db: Session = Depends(get_db)):
    prompt = _get_prompt(db, prompt_id)
    if prompt.is_active:
        raise HTTPException(status_code=400, detail="Cannot delete the active prompt")
    db.delete(prompt)
    db.commit()


@router.post("/{prompt_id}/activate", response_model=PromptOut)
def activate_prompt(prompt_id: int, db: Session = Depends(get_db)):
    prompt = _get_prompt(db, prompt_id)
    _deactivate_others(db, prompt.id)
    prompt.is_active = True
    db.commit()
    db.refresh(prompt)
    return prompt


@router.post("/{prompt_id}/recalculate")
def recalculate_with_prompt(prompt_id: int, db: Session = Depends(get_db)):
    """Re-run the quality analysis of every call with this prompt."""
    config = config_from_prompt(_get_prompt(db, prompt_id))
    calls = db.query(Call).filter(Call.transcript != "").order_by(Call.id.asc()).all()
    result = BatchResult(total=len(calls))

    for i, call in enumerate(calls):
        try:
            apply_analysis(call, analyze_call(call.transcript, config))
            db.commit()
            result.success += 1
        except Exception as e:
            db.rollback()
            logger.error(f"[prompts] recalculation of call {call.id} failed: {e}")
            result.fail(call.title, e)
        if i < len(calls) - 1:
            pause()

    logger.info(f"[prompts] recalculated {result.success}/{result.total} calls with prompt {prompt_id}")
    return result.as_dict()
