# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["BATCH_DELAY_S"] = "0"
os.environ["CRON_USER_DELAY_S"] = "0"
os.environ.pop("GOOGLE_CLIENT_ID", None)

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from callintel.config import settings
from callintel.db import Base, get_db
from callintel.main import app
from callintel.models import Prompt, User
from callintel.seed import seed_fixed_categories
from callintel.services import llm
from callintel.services.call_analysis import config_from_prompt
from callintel.services.google_calendar import CalendarEventData

settings.BATCH_DELAY_S = 0
settings.CRON_USER_DELAY_S = 0


# ---------- LLM ----------
class FakeLLM:
    """Scripted stand-in for llm.complete, keyed on which prompt is being sent."""

    def __init__(self):
        self.summary = "The team reviewed the proposal, a rough estimate and a price range for phase one."
        self.adjudication = {
            "category": "Ballpark Proposal",
            "confidence": 0.82,
            "reasoning": ["Clear statement this is an estimate", "Strong signals: proposal, range"],
        }
        self.analysis = {
            "summary": "A productive call about scope and budget.",
            "rating": 8.5,
            "sentiment": "Positive",
            "strengths": ["Clear agenda", "Good listening"],
            "areasForImprovement": ["Confirm next steps"],
        }
        self.participants = {"participants": []}
        self.fail = set()
        self.calls = []

    @staticmethod
    def kind_of(system_prompt: str) -> str:
        if "condensing meeting transcripts" in system_prompt:
            return "summary"
        if "classifying business calls" in system_prompt:
            return "adjudication"
        if "call analyst" in system_prompt:
            return "analysis"
        return "participants"

    def __call__(self, system_prompt, user_prompt, **kwargs):
        kind = self.kind_of(system_prompt)
        self.calls.append((kind, system_prompt, user_prompt))
        if kind in self.fail:
            raise llm.LLMError(f"{kind} unavailable")
        value = getattr(self, kind)
        if callable(value):
            value = value(user_prompt)
        return value if isinstance(value, str) else json.dumps(value)

    def count(self, kind: str) -> int:
        return sum(1 for k, _, _ in self.calls if k == kind)


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(llm, "complete", fake)
    return fake


# ---------- Google ----------
class FakeDrive:
    def __init__(self, files=None, contents=None, folder_files=None, error=None):
        self.files = files or []
        self.contents = contents or {}
        self.folder_files = folder_files or []
        self.error = error
        self.queries = []

    def list_files(self, query, page_size=10, order_by="modifiedTime desc"):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.files)

    def list_folder(self, folder_id, page_token=None):
        return list(self.folder_files), None

    def get_folder(self, folder_id):
        return {"id": folder_id, "name": f"Folder {folder_id}"}

    def get_content(self, file_id, mime_type):
        value = self.contents.get(file_id, "")
        if isinstance(value, Exception):
            raise value
        return value


class FakeCalendar:
    def __init__(self, events=None, error=None):
        self.events = events or []
        self.error = error
        self.requests = []

    def list_events(self, start, end, max_results=None):
        self.requests.append((start, end))
        if self.error:
            raise self.error
        return [e for e in self.events if e.end_time >= start and e.start_time <= end]


def make_event(id="evt-1", summary="Acme Roadmap Review", start=datetime(2025, 3, 4, 10, 0),
               end=datetime(2025, 3, 4, 11, 0), organizer="host@scandiweb.com",
               attendees=("host@scandiweb.com", "jane@acme.com"), meet_code="abc-defg-hij",
               attendees_omitted=False) -> CalendarEventData:
    return CalendarEventData(
        id=id,
        summary=summary,
        start_time=start,
        end_time=end,
        organizer=organizer,
        attendees=list(attendees),
        hangout_link=f"https://meet.google.com/{meet_code}" if meet_code else None,
        meet_code=meet_code,
        attendees_omitted=attendees_omitted,
    )


# ---------- DB ----------
@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_fixed_categories(session)
    yield session
    session.close()


@pytest.fixture
def user(db):
    u = User(
        email="host@scandiweb.com",
        name="Host",
        google_email="host@scandiweb.com",
        google_name="Host Person",
        google_access_token="access",
        google_refresh_token="refresh",
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def prompt(db):
    p = Prompt(
        name="Default",
        analysis_prompt="Analyze this sales call.",
        rating_prompt="Rate from 1 to 10.",
        is_active=True,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def analysis_config(prompt):
    return config_from_prompt(prompt)


@pytest.fixture
def client(session_factory, db):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
