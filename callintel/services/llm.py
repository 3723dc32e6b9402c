# callintel/services/llm.py
from __future__ import annotations

import logging
import time
from typing import Optional

from openai import OpenAI

from ..config import settings

logger = logging.getLogger("llm")

_client: Optional[OpenAI] = None


class LLMError(RuntimeError):
    pass


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        if not settings.OPENAI_API_KEY:
            raise LLMError("OPENAI_API_KEY missing")
        _client = OpenAI(api_key=settings.OPENAI_API_KEY).with_options(timeout=settings.LLM_TIMEOUT_S)
    return _client


def _call_once(system_prompt: str, user_prompt: str, *, json_mode: bool, temperature: float,
               max_tokens: Optional[int], model: Optional[str]) -> str:
    kwargs = {
        "model": model or settings.MODEL_NAME,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": temperature,
    }
    if max_tokens:
        kwargs["max_tokens"] = max_tokens
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    logger.info(f"[OpenAI] model={kwargs['model']} max_tokens={max_tokens} temp={temperature} json={json_mode}")
    try:
        resp = _get_client().chat.completions.create(**kwargs)
    except LLMError:
        raise
    except Exception as e:
        raise LLMError(f"openai_error: {e}") from e
    return resp.choices[0].message.content or ""


def complete(
    system_prompt: str,
    user_prompt: str,
    *,
    json_mode: bool = False,
    temperature: float = 0.2,
    max_tokens: Optional[int] = None,
    model: Optional[str] = None,
    retries: Optional[int] = None,
) -> str:
    """
    Single chat completion. Returns the raw message text, which may be empty
    or malformed; callers validate. Retries transient errors with backoff and
    raises LLMError once attempts are exhausted.
    """
    attempt_max = max(1, retries if retries is not None else settings.LLM_RETRIES)
    delay = 0.7
    last_err: Optional[Exception] = None

    for attempt in range(1, attempt_max + 1):
        try:
            return _call_once(
                system_prompt, user_prompt,
                json_mode=json_mode, temperature=temperature, max_tokens=max_tokens, model=model,
            )
        except LLMError as e:
            last_err = e
            logger.warning(f"[llm] attempt {attempt}/{attempt_max} failed: {e}")
            if attempt < attempt_max:
                time.sleep(delay)
                delay = min(delay * 2, 6.0)

    raise LLMError(str(last_err) if last_err else "LLM call failed")
