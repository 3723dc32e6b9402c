# callintel/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# --- DB / Models ---
from .db import Base, SessionLocal, engine
from . import models  # noqa: F401  (registers tables)
from .seed import seed_default_prompt, seed_fixed_categories

# --- Routers ---
from .routes.calendar import router as calendar_router
from .routes.calls import dashboard_router, router as calls_router
from .routes.categories import router as categories_router
from .routes.cron import router as cron_router
from .routes.drive import router as drive_router
from .routes.google_oauth import router as google_auth_router
from .routes.google_status import router as google_status_router
from .routes.prompts import router as prompts_router

logger = logging.getLogger("app")

# ========= App =========
app = FastAPI(title="Call Intelligence API", version="0.4.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(calls_router)          # /api/calls/...
app.include_router(dashboard_router)      # /api/dashboard/...
app.include_router(categories_router)     # /api/categories/...
app.include_router(prompts_router)        # /api/prompts/...
app.include_router(calendar_router)       # /api/calendar/...
app.include_router(drive_router)          # /api/drive/...
app.include_router(google_auth_router)    # /api/auth/google/...
app.include_router(google_status_router)  # /api/google/...
app.include_router(cron_router)           # /api/cron/...


def init_db() -> None:
    # Create tables (dev). In prod, use Alembic.
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_fixed_categories(db)
        seed_default_prompt(db)
    finally:
        db.close()


init_db()


# ========= health =========
@app.get("/api/health")
def health():
    return {"ok": True, "model": settings.MODEL_NAME}
