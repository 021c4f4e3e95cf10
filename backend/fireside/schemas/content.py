"""
Fireside Backend — Content, Library & Service Schemas
=======================================================

What:  Pydantic models for content items, the current user, library listings,
       study sentence highlights, and the API envelopes (render, health, error).
Who:   Returned by route handlers; produced by the adapters from backend rows.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from fireside.schemas.highlight import Highlight, RenderResult, SentenceRange


class ContentItem(BaseModel):
    """
    What:  An addressable block of text that can carry highlights.
    How:   `body` is the canonical string every offset is measured against.
    """
    id: str
    kind: Literal["devotion_entry", "study_entry"]
    title: Optional[str] = None
    body: str = ""


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class LibraryHighlightItem(BaseModel):
    """
    What:  One row of the "My highlights" library tab.
    Who:   Built from dev_list_my_highlights / sg_list_my_highlights rows.
    """
    id: str
    kind: Literal["devotion", "study"]
    content_item_id: str
    series_id: Optional[str] = None
    group_id: Optional[str] = None
    title: Optional[str] = Field(default=None, description="Devotion or entry title")
    series_title: Optional[str] = None
    text: str = ""
    note: Optional[str] = None
    start: int = 0
    created_at: Optional[datetime] = None


class LibraryResponse(BaseModel):
    devotions: List[LibraryHighlightItem] = Field(default_factory=list)
    study: List[LibraryHighlightItem] = Field(default_factory=list)


class StudySeriesHighlights(BaseModel):
    """Map of study entry id → sorted sentence indices the caller highlighted."""
    series_id: str
    entries: Dict[str, List[int]] = Field(default_factory=dict)


class StudyToggleResponse(BaseModel):
    entry_id: str
    sentence_index: int
    highlighted: bool = Field(description="State after the toggle")
    indices: List[int] = Field(description="All highlighted indices for the entry")


class RenderResponse(BaseModel):
    """
    What:  Everything a client needs to draw one devotion entry with highlights.
    Who:   Returned by GET /api/devotions/entries/{entry_id}/render.
    """
    item: ContentItem
    highlights: List[Highlight] = Field(default_factory=list)
    sentences: List[SentenceRange] = Field(default_factory=list)
    render: RenderResult


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "unauthorized", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    supabase: str = Field(description="Backend circuit state: closed, open, half_open")
    active_sessions: int = Field(description="Users with a cached highlight store")
    uptime_seconds: float = Field(description="Seconds since service started")
