"""
Fireside Backend — Backend Row Adapters
=========================================

What:  One normalization function per entity, turning whatever row shape the
       backend returned into the canonical Pydantic model.
Why:   Different RPCs and tables spell the same field differently (start_pos vs
       start, body_md vs body vs content, email_lock vs email). Every
       alternative spelling is resolved here and nowhere else.
How:   `_first()` picks the first present, non-null key from a list of
       candidates; each adapter lists its candidates in priority order.
Who:   Called by SupabaseBackend and the library/content services.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fireside.schemas.content import ContentItem, CurrentUser, LibraryHighlightItem
from fireside.schemas.highlight import Highlight, HighlightColor, Visibility

HIGHLIGHT_COLORS = [c.value for c in HighlightColor]
VISIBILITIES = [v.value for v in Visibility]


def _first(row: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return default


def _nested(row: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """First nested object under any of `keys`, or an empty dict."""
    for key in keys:
        value = row.get(key)
        if isinstance(value, dict):
            return value
    return {}


def _enum_value(value: Any, allowed: Iterable[str], default: str) -> str:
    # Older rows stored hex colors ("#fde047"); anything unknown falls back
    return value if value in set(allowed) else default


def highlight_from_row(
    row: Dict[str, Any],
    content_item_id: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> Highlight:
    """
    Normalize a devotion highlight row.

    Args:
        row:             Row from dev_list_highlights_for_entry or a table select.
                         Aggregate rows nest the highlight under "highlight"/"h".
        content_item_id: Fallback when the row omits the entry id.
        owner_id:        Fallback when the row omits the author.
    """
    hl = _nested(row, "highlight", "h") or row
    start = int(_first(hl, "start_pos", "start", "range_start", default=0))
    length = _first(hl, "length", "range_length")
    if length is None:
        end = _first(hl, "end_pos", "end")
        length = int(end) - start if end is not None else 0

    return Highlight(
        id=str(_first(hl, "id", "uuid", default="")),
        content_item_id=str(
            _first(hl, "entry_id", "content_item_id", "devotion_entry_id", default=content_item_id or "")
        ),
        owner_id=str(_first(hl, "user_id", "owner_id", "author_id", default=owner_id or "")),
        range_start=max(0, start),
        range_length=max(0, int(length)),
        selected_text=str(_first(hl, "selected_text", "text", default="")),
        color=_enum_value(_first(hl, "color"), HIGHLIGHT_COLORS, "yellow"),
        visibility=_enum_value(_first(hl, "visibility"), VISIBILITIES, "private"),
        note=_first(hl, "note"),
        body_hash=_first(hl, "body_hash"),
        created_at=_first(hl, "created_at", default=datetime.now(timezone.utc)),
    )


def content_item_from_row(row: Dict[str, Any], kind: str) -> ContentItem:
    """Normalize a devotion or study entry row; the body field name varies by table."""
    return ContentItem(
        id=str(_first(row, "id", default="")),
        kind=kind,
        title=_first(row, "title", "day_title"),
        body=str(_first(row, "body_md", "body", "content", "text", "content_text", default="")),
    )


def current_user_from_row(row: Dict[str, Any]) -> CurrentUser:
    return CurrentUser(
        id=str(_first(row, "id", "user_id", "sub", default="")),
        email=_first(row, "email_lock", "email", "locked_email"),
    )


def library_item_from_row(row: Dict[str, Any], kind: str) -> LibraryHighlightItem:
    """
    Normalize a "my highlights" row.

    Devotion rows carry devotion_id/devotion_title; study rows carry
    entry_id/entry_title plus series_title. Aggregate shapes nest the parts
    under highlight/entry/series.
    """
    hl = _nested(row, "highlight", "h") or row
    entry = _nested(row, "entry", "e", "devotion_entry")
    series = _nested(row, "series", "s", "devotion_series")
    return LibraryHighlightItem(
        id=str(_first(hl, "id", "uuid", default="")),
        kind=kind,
        content_item_id=str(
            _first(hl, "entry_id", "devotion_id", default=_first(entry, "id", default=""))
        ),
        series_id=_first(hl, "series_id", default=_first(entry, "series_id")),
        group_id=_first(row, "group_id", default=_first(series, "group_id")),
        title=_first(row, "devotion_title", "entry_title", default=_first(entry, "title")),
        series_title=_first(row, "series_title", default=_first(series, "title")),
        text=str(_first(hl, "text", "selected_text", default="")),
        note=_first(hl, "note"),
        start=int(_first(hl, "start_pos", "start", default=0)),
        created_at=_first(hl, "created_at"),
    )


def sentence_index_from_loc(row: Dict[str, Any]) -> Optional[int]:
    """Sentence index of a study_highlights row, or None if `loc` has no integer index."""
    loc = row.get("loc")
    if not isinstance(loc, dict):
        return None
    idx = loc.get("sentence_index")
    if isinstance(idx, bool) or not isinstance(idx, int):
        return None
    return idx


def dedupe_newest_first(items: Iterable[LibraryHighlightItem]) -> List[LibraryHighlightItem]:
    """Drop repeated ids (first wins), then sort newest first, ties by start offset."""
    seen = set()
    unique: List[LibraryHighlightItem] = []
    for item in items:
        if not item.id or item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)

    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def created(item: LibraryHighlightItem) -> datetime:
        if item.created_at is None:
            return epoch
        if item.created_at.tzinfo is None:
            return item.created_at.replace(tzinfo=timezone.utc)
        return item.created_at

    unique.sort(key=lambda it: it.start)
    unique.sort(key=created, reverse=True)
    return unique
