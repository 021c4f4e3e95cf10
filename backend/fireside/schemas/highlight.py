"""
Fireside Backend — Highlight Schemas
======================================

What:  Pydantic models for highlights, text ranges, rendered segments, and the
       request bodies of the highlight endpoints.
How:   All offsets are UTF-16 code-unit positions into the canonical body of a
       content item (the same unit a browser reports), never DOM-normalized text.
Who:   Used by the indexer, store, renderer, gateway, and the route handlers.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fireside.offsets import utf16_len


class HighlightColor(str, Enum):
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PINK = "pink"
    ORANGE = "orange"


class Visibility(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    LEADERS = "leaders"


# ══════════════════════════════════════════════════════════════════════════
# Core Models
# ══════════════════════════════════════════════════════════════════════════


class Highlight(BaseModel):
    """
    What:  A user-authored annotation over a contiguous range of a content item.
    Who:   Produced by the adapters from backend rows, or by the mutation gateway
           for an optimistic (not yet confirmed) entry.

    `id` starts with "tmp_" while the create call is in flight.
    """
    id: str = Field(description="Backend-assigned id (or tmp_* while pending)")
    content_item_id: str = Field(description="Entry the highlight belongs to")
    owner_id: str = Field(description="Author's user id")
    range_start: int = Field(ge=0, description="Start offset (UTF-16 code units)")
    range_length: int = Field(ge=0, description="Length (UTF-16 code units)")
    selected_text: str = Field(default="", description="Text captured at creation")
    color: HighlightColor = HighlightColor.YELLOW
    visibility: Visibility = Visibility.PRIVATE
    note: Optional[str] = None
    body_hash: Optional[str] = Field(
        default=None, description="SHA-256 of the body when the highlight was made"
    )
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Backend timestamps without an offset are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def range_end(self) -> int:
        return self.range_start + self.range_length

    @property
    def pending(self) -> bool:
        return self.id.startswith("tmp_")

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        """
        Advisory capability check used to decide whether to offer "delete".

        This is a UX hint only. The backend's row-level policy is the
        authorization boundary and will reject a delete by anyone else.
        """
        return user_id is not None and self.owner_id == user_id


class HighlightMetadata(BaseModel):
    """Caller-chosen attributes of a new highlight."""
    color: HighlightColor = HighlightColor.YELLOW
    visibility: Visibility = Visibility.PRIVATE
    note: Optional[str] = Field(default=None, max_length=2000)


class TextRange(BaseModel):
    """One gesture's worth of text: {start, length, text}."""
    start: int = Field(ge=0)
    length: int = Field(ge=0)
    text: str

    @property
    def end(self) -> int:
        return self.start + self.length


class SentenceRange(BaseModel):
    """
    What:  A sentence-mode range; `index` is its position in this render pass.

    Indices are recomputed on every pass and are never stored as identity
    for devotion highlights.
    """
    index: int = Field(ge=0)
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    text: str

    def trimmed(self) -> "SentenceRange":
        """The same sentence without surrounding whitespace."""
        stripped_left = self.text.lstrip()
        stripped = stripped_left.rstrip()
        lead = utf16_len(self.text[: len(self.text) - len(stripped_left)])
        tail = utf16_len(stripped_left[len(stripped):])
        return SentenceRange(
            index=self.index,
            start=self.start + lead,
            end=max(self.start + lead, self.end - tail),
            text=stripped,
        )

    def to_text_range(self) -> TextRange:
        return TextRange(start=self.start, length=self.end - self.start, text=self.text)


class SelectionPoint(BaseModel):
    """A browser selection boundary: text node index + offset within that node."""
    node_index: int
    offset: int


# ══════════════════════════════════════════════════════════════════════════
# Render Output
# ══════════════════════════════════════════════════════════════════════════


class Segment(BaseModel):
    """
    What:  One piece of the rendered partition of a text.
    How:   Segments of one render are gapless, non-overlapping, and their `text`
           values concatenate to the body they were rendered from.
    """
    kind: Literal["plain", "highlighted"]
    start: int = Field(description="Start offset (UTF-16 code units)")
    end: int = Field(description="End offset, exclusive (UTF-16 code units)")
    text: str
    highlight_id: Optional[str] = None
    color: Optional[HighlightColor] = None
    visibility: Optional[Visibility] = None
    note: Optional[str] = None
    deletable: bool = Field(
        default=False,
        description="UX hint: viewer authored this highlight (not an authorization check)",
    )


class RenderResult(BaseModel):
    segments: List[Segment] = Field(default_factory=list)
    stale_ids: List[str] = Field(
        default_factory=list, description="Highlights dropped because their range no longer fits"
    )
    drifted_ids: List[str] = Field(
        default_factory=list, description="Highlights whose body hash differs from the current body"
    )


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SelectionRequest(BaseModel):
    """
    What:  A free-form selection made inside a rendered entry.
    How:   `nodes` are the text contents of the container's text nodes, in
           document order, exactly as rendered from the segments.
    """
    anchor: SelectionPoint
    focus: SelectionPoint
    nodes: List[str] = Field(min_length=1)


class HighlightCreateRequest(BaseModel):
    """
    What:  Body of POST /api/devotions/entries/{entry_id}/highlights.

    Exactly one range source must be given:
        - sentence_index: click on a sentence (sentence mode)
        - selection:      free-form browser selection
        - start + length: explicit range (already in canonical offsets)
    """
    sentence_index: Optional[int] = Field(default=None, ge=0)
    selection: Optional[SelectionRequest] = None
    start: Optional[int] = Field(default=None, ge=0)
    length: Optional[int] = Field(default=None, gt=0)
    color: Optional[HighlightColor] = None
    visibility: Optional[Visibility] = None
    note: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_single_source(self) -> "HighlightCreateRequest":
        explicit = self.start is not None or self.length is not None
        if explicit and (self.start is None or self.length is None):
            raise ValueError("start and length must be given together")
        sources = sum([self.sentence_index is not None, self.selection is not None, explicit])
        if sources != 1:
            raise ValueError("Provide exactly one of sentence_index, selection, or start+length")
        return self
