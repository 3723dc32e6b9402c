# callintel/routes/google_oauth.py
from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..db import get_db
from ..models import User
from ..services.google_auth import SCOPES, TOKEN_URI, google_client_config
from ..utils.dates import now_utc

logger = logging.getLogger("google")

USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

router = APIRouter(prefix="/api/auth/google", tags=["google-auth"])


# ---- helpers ----
def parse_expiry_from_token_response(data: Dict[str, Any]):
    expires_in = int(data.get("expires_in", 3600))
    return now_utc() + timedelta(seconds=max(60, expires_in - 120))


def _state_signature(payload: str) -> str:
    _, client_secret, _ = google_client_config()
    return hmac.new(client_secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def sign_state(user_id: int) -> str:
    payload = f"uid:{user_id}"
    return f"{payload}:{_state_signature(payload)}"


def verify_state(state: Optional[str]) -> Optional[int]:
    """User id carried by a state we signed, or None for anything else."""
    if not state or state.count(":") != 2:
        return None
    payload, sig = state.rsplit(":", 1)
    tail = payload.split("uid:", 1)[-1]
    if not payload.startswith("uid:") or not tail.isdigit():
        return None
    if not hmac.compare_digest(sig, _state_signature(payload)):
        return None
    return int(tail)


def build_auth_url(state: str) -> str:
    client_id, _, redirect_uri = google_client_config()
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "scope": " ".join(SCOPES),
        "state": state,
    }
    return "https://accounts.google.com/o/oauth2/v2/auth?" + urlencode(params)


def exchange_code_for_tokens(code: str) -> Dict[str, Any]:
    client_id, client_secret, redirect_uri = google_client_config()
    data = {
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }
    with httpx.Client(timeout=20) as client:
        r = client.post(TOKEN_URI, data=data)
    if r.status_code != 200:
        raise RuntimeError(f"Token exchange failed: {r.text}")
    return r.json()


def fetch_userinfo(access_token: str) -> Dict[str, Any]:
    with httpx.Client(timeout=20) as client:
        r = client.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
    if r.status_code != 200:
        logger.warning(f"[google] userinfo lookup failed: {r.status_code}")
        return {}
    return r.json()


# ---- routes ----
@router.get("/start")
def google_auth_start(user: User = Depends(get_current_user)):
    """
    Return Google OAuth URL. The user id rides in 'state', signed with the
    client secret, so the callback can attach tokens to the correct user.
    """
    try:
        return {"url": build_auth_url(sign_state(user.id))}
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Google authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing code")

    try:
        uid = verify_state(state)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if uid is None:
        logger.warning("[google] callback with an invalid state")
        raise HTTPException(status_code=400, detail="Invalid state")

    user = db.get(User, uid)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    try:
        payload = exchange_code_for_tokens(code)
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))

    access_token = payload.get("access_token")
    refresh_token = payload.get("refresh_token")  # present on first consent
    if not access_token:
        raise HTTPException(status_code=400, detail="No access_token in token response")

    user.google_access_token = access_token
    if refresh_token:
        user.google_refresh_token = refresh_token
    user.google_token_expiry = parse_expiry_from_token_response(payload)

    info = fetch_userinfo(access_token)
    user.google_email = info.get("email") or user.google_email
    user.google_name = info.get("name") or user.google_name

    db.add(user)
    db.commit()
    logger.info(f"[google] connected user {user.id} ({user.google_email})")
    return RedirectResponse(settings.FRONTEND_AFTER_AUTH)
