# callintel/auth.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .db import get_db
from .models import User


def _uid_from_request(request: Request) -> Optional[int]:
    """
    Minimal auth shim. Looks for:
      - X-User-Id header
      - httpOnly 'uid' cookie
      - ?uid=<id> query param
    """
    for raw in (
        request.headers.get("X-User-Id"),
        request.cookies.get("uid"),
        request.query_params.get("uid"),
    ):
        if raw and str(raw).isdigit():
            return int(raw)
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    uid = _uid_from_request(request)
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = db.get(User, uid)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    uid = _uid_from_request(request)
    return db.get(User, uid) if uid else None
