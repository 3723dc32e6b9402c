# callintel/schemas.py
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------- Categories ----------
class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    is_fixed: bool

    class Config:
        from_attributes = True


class CategoryUpdate(BaseModel):
    description: Optional[str] = None
    color: Optional[str] = None


# ---------- Calls ----------
class OverrideOut(BaseModel):
    category_id: int
    overridden_at: Optional[datetime] = None
    overridden_by: Optional[int] = None

    class Config:
        from_attributes = True


class CategoryStateOut(BaseModel):
    predicted: Optional[int] = None
    final: Optional[int] = None
    override: Optional[OverrideOut] = None
    assigned: bool = False

    class Config:
        from_attributes = True


class CallListItem(BaseModel):
    id: int
    title: str
    call_date: datetime
    organizer: Optional[str] = None
    ai_rating: Optional[float] = None
    ai_sentiment: Optional[str] = None
    category: Optional[CategoryOut] = None
    confidence_score: Optional[float] = None
    needs_review: bool = False
    was_overridden: bool = False
    is_external: Optional[bool] = None
    external_domains: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CallOut(CallListItem):
    participants: list[str] = Field(default_factory=list)
    transcript: str
    transcript_summary: Optional[str] = None
    ai_analysis: Optional[str] = None
    ai_strengths: list[str] = Field(default_factory=list)
    ai_areas_for_improvement: list[str] = Field(default_factory=list)
    predicted_category: Optional[CategoryOut] = None
    category_final: Optional[CategoryOut] = None
    reasoning_list: list[str] = Field(default_factory=list)
    top_candidates: list[Any] = Field(default_factory=list)
    category_state: CategoryStateOut
    overridden_at: Optional[datetime] = None
    overridden_by: Optional[int] = None
    classification_source: Optional[str] = None
    meet_code: Optional[str] = None
    drive_file_id: Optional[int] = None
    calendar_event_id: Optional[int] = None


class CallCreate(BaseModel):
    title: str = Field(min_length=1)
    transcript: str = Field(min_length=1)
    call_date: Optional[datetime] = None
    organizer: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    meet_code: Optional[str] = None
    # set by the user; None leaves it unknown
    is_external: Optional[bool] = None


class OverrideIn(BaseModel):
    category_id: int


# ---------- Prompts ----------
class PromptIn(BaseModel):
    name: str = Field(min_length=1)
    analysis_prompt: str = Field(min_length=1)
    rating_prompt: str = Field(min_length=1)
    is_active: bool = False


class PromptUpdate(BaseModel):
    name: Optional[str] = None
    analysis_prompt: Optional[str] = None
    rating_prompt: Optional[str] = None


class PromptOut(BaseModel):
    id: int
    name: str
    analysis_prompt: str
    rating_prompt: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---------- Calendar ----------
class CalendarSyncIn(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    auto_import: Optional[bool] = None


class CalendarEventOut(BaseModel):
    id: int
    google_event_id: str
    summary: Optional[str] = None
    start_time: datetime
    end_time: datetime
    organizer: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)
    attendees_omitted: bool = False
    meet_code: Optional[str] = None
    is_external: Optional[bool] = None
    external_domains: list[str] = Field(default_factory=list)
    classification_source: Optional[str] = None
    has_transcript: bool = False
    imported: bool = False
    imported_call_id: Optional[int] = None
    is_duplicate: bool = False
    primary_user_id: Optional[int] = None

    class Config:
        from_attributes = True


class CalendarImportIn(BaseModel):
    event_ids: list[int] = Field(min_length=1)


# ---------- Drive ----------
class DriveFolderIn(BaseModel):
    folder: str = Field(min_length=1, description="Folder id or Drive folder URL")


class DriveSourceOut(BaseModel):
    id: int
    folder_id: str
    folder_name: Optional[str] = None
    status: str
    last_sync: Optional[datetime] = None

    class Config:
        from_attributes = True


class DriveFileOut(BaseModel):
    id: int
    google_file_id: str
    name: str
    mime_type: str
    modified_time: datetime
    status: str
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class DriveImportIn(BaseModel):
    file_ids: Optional[list[int]] = None
    match_calendar: bool = True


# ---------- Google ----------
class AutoSyncIn(BaseModel):
    enabled: bool
