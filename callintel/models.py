# callintel/models.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .db import Base

# JSONB on postgres, plain JSON elsewhere (sqlite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")

SENTIMENTS = ("Positive", "Neutral", "Negative")

# DriveFile.status
FILE_PENDING = "pending"
FILE_IMPORTED = "imported"
FILE_ERROR = "error"
FILE_SKIPPED = "skipped"


# ---------- Users ----------
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # ---- Google integration (Drive + Calendar share one grant) ----
    google_email = Column(String(255), nullable=True)
    google_name = Column(String(255), nullable=True)
    google_access_token = Column(String, nullable=True)
    google_refresh_token = Column(String, nullable=True)
    google_token_expiry = Column(DateTime, nullable=True)

    # ---- calendar auto-sync ----
    auto_sync_enabled = Column(Boolean, nullable=False, default=True)
    last_synced_at = Column(DateTime, nullable=True)
    last_sync_status = Column(String(32), nullable=True)  # success | partial | failed
    last_sync_error = Column(Text, nullable=True)


# ---------- Categories ----------
class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    # playbook text: shown in the UI and fed to the adjudication prompt
    description = Column(Text, nullable=True)
    color = Column(String(16), nullable=True)
    is_fixed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ---------- Prompts ----------
class Prompt(Base):
    __tablename__ = "prompts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    analysis_prompt = Column(Text, nullable=False)
    rating_prompt = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ---------- Drive ----------
class DriveSource(Base):
    __tablename__ = "drive_sources"
    __table_args__ = (UniqueConstraint("user_id", "folder_id", name="uq_drive_sources_user_folder"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    folder_id = Column(String(255), nullable=False)
    folder_name = Column(String(512), nullable=True)
    status = Column(String(32), nullable=False, default="active")
    last_sync = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class DriveFile(Base):
    __tablename__ = "drive_files"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    google_file_id = Column(String(255), unique=True, nullable=False)
    name = Column(String(512), nullable=False)
    mime_type = Column(String(255), nullable=False)
    modified_time = Column(DateTime, nullable=False, index=True)
    size = Column(BigInteger, nullable=True)
    web_view_link = Column(Text, nullable=True)

    raw_text = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=FILE_PENDING)
    error_message = Column(Text, nullable=True)
    imported_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    calls = relationship("Call", back_populates="drive_file")


# ---------- Calendar ----------
class CalendarEvent(Base):
    __tablename__ = "calendar_events"
    __table_args__ = (UniqueConstraint("user_id", "google_event_id", name="uq_calendar_events_user_event"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    google_event_id = Column(String(255), nullable=False, index=True)
    summary = Column(String(1024), nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    organizer = Column(String(255), nullable=True)
    attendees = Column(JSONList, nullable=False, default=list)
    attendees_omitted = Column(Boolean, nullable=False, default=False)
    hangout_link = Column(Text, nullable=True)
    meet_code = Column(String(128), nullable=True, index=True)

    # external classification snapshot; None = unknown
    is_external = Column(Boolean, nullable=True)
    external_domains = Column(JSONList, nullable=False, default=list)
    classification_source = Column(String(32), nullable=True)

    has_transcript = Column(Boolean, nullable=False, default=False)
    transcript_file_id = Column(Integer, ForeignKey("drive_files.id", ondelete="SET NULL"), nullable=True)

    imported = Column(Boolean, nullable=False, default=False)
    imported_call_id = Column(Integer, nullable=True, index=True)

    # same physical meeting seen through another user's calendar
    is_duplicate = Column(Boolean, nullable=False, default=False)
    primary_event_id = Column(Integer, nullable=True)
    primary_user_id = Column(Integer, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transcript_file = relationship("DriveFile")


# ---------- Calls ----------
@dataclass(frozen=True)
class OverrideMetadata:
    category_id: int
    overridden_at: Optional[datetime]
    overridden_by: Optional[int]


@dataclass(frozen=True)
class CategoryState:
    """Prediction vs. confirmed category, read off the Call columns."""
    predicted: Optional[int]
    final: Optional[int]
    override: Optional[OverrideMetadata]

    @property
    def assigned(self) -> bool:
        return self.final is not None


class Call(Base):
    __tablename__ = "calls"
    # one Call per physical meeting; NULL meet codes never collide
    __table_args__ = (UniqueConstraint("meet_code", "call_date", name="uq_calls_meet_code_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(512), nullable=False)
    call_date = Column(DateTime, nullable=False, index=True)
    organizer = Column(String(255), nullable=True)
    participants = Column(JSONList, nullable=False, default=list)
    transcript = Column(Text, nullable=False)
    transcript_summary = Column(Text, nullable=True)

    # ---- AI analysis ----
    ai_analysis = Column(Text, nullable=True)
    ai_rating = Column(Float, nullable=True)
    ai_sentiment = Column(String(16), nullable=True)
    ai_strengths = Column(JSONList, nullable=False, default=list)
    ai_areas_for_improvement = Column(JSONList, nullable=False, default=list)

    # ---- classification ----
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    predicted_category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    category_final_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    confidence_score = Column(Float, nullable=True)
    category_reasoning = Column(Text, nullable=True)
    top_candidates = Column(JSONList, nullable=False, default=list)
    needs_review = Column(Boolean, nullable=False, default=False)
    was_overridden = Column(Boolean, nullable=False, default=False)
    overridden_at = Column(DateTime, nullable=True)
    overridden_by = Column(Integer, nullable=True)

    # ---- external classification ----
    is_external = Column(Boolean, nullable=True)
    external_domains = Column(JSONList, nullable=False, default=list)
    classification_source = Column(String(32), nullable=True)  # calendar | manual | unknown

    # ---- dedup / provenance ----
    meet_code = Column(String(128), nullable=True, index=True)
    is_duplicate = Column(Boolean, nullable=False, default=False)
    drive_file_id = Column(Integer, ForeignKey("drive_files.id", ondelete="SET NULL"), nullable=True)
    calendar_event_id = Column(Integer, ForeignKey("calendar_events.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", foreign_keys=[category_id], lazy="joined")
    predicted_category = relationship("Category", foreign_keys=[predicted_category_id], lazy="joined")
    category_final = relationship("Category", foreign_keys=[category_final_id], lazy="joined")
    drive_file = relationship("DriveFile", back_populates="calls")
    calendar_event = relationship("CalendarEvent", foreign_keys=[calendar_event_id])

    @property
    def reasoning_list(self) -> list[str]:
        return [ln for ln in (self.category_reasoning or "").splitlines() if ln.strip()]

    @property
    def category_state(self) -> CategoryState:
        override = None
        if self.was_overridden and self.category_final_id is not None:
            override = OverrideMetadata(
                category_id=self.category_final_id,
                overridden_at=self.overridden_at,
                overridden_by=self.overridden_by,
            )
        return CategoryState(
            predicted=self.predicted_category_id,
            final=self.category_final_id,
            override=override,
        )
