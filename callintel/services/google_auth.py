# callintel/services/google_auth.py
import logging
import os
from typing import Tuple

from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from sqlalchemy.orm import Session

from ..models import User
from ..utils.dates import as_utc_naive

logger = logging.getLogger("google")

SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class IntegrationNotConnected(RuntimeError):
    pass


def google_client_config() -> Tuple[str, str, str]:
    """Fetch env at call-time to avoid import-order issues."""
    client_id = os.getenv("GOOGLE_CLIENT_ID", "")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET", "")
    redirect_uri = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:8000/api/auth/google/callback")
    if not client_id:
        raise RuntimeError("GOOGLE_CLIENT_ID is not set")
    if not client_secret:
        raise RuntimeError("GOOGLE_CLIENT_SECRET is not set")
    return client_id, client_secret, redirect_uri


def is_connected(user: User) -> bool:
    return bool(user.google_refresh_token)


def creds_from_user(user: User) -> Credentials:
    if not is_connected(user):
        raise IntegrationNotConnected("Google not connected")
    client_id, client_secret, _ = google_client_config()
    return Credentials(
        token=user.google_access_token,
        refresh_token=user.google_refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=SCOPES,
    )


def ensure_fresh_creds(db: Session, user: User, creds: Credentials) -> Credentials:
    """
    Refresh access token if needed and persist updated token/expiry on the user.
    """
    if creds.valid:
        return creds

    creds.refresh(GoogleRequest())
    user.google_access_token = creds.token
    if getattr(creds, "expiry", None):
        user.google_token_expiry = as_utc_naive(creds.expiry)
    db.add(user)
    db.commit()
    logger.info(f"[google] refreshed access token for user {user.id}")
    return creds


def user_credentials(db: Session, user: User) -> Credentials:
    return ensure_fresh_creds(db, user, creds_from_user(user))
