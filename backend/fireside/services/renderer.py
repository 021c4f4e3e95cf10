"""
Fireside Backend — Reconciliation Renderer
============================================

What:  Resolves a set of possibly-overlapping highlights into an ordered,
       non-overlapping partition of a text into plain and highlighted segments.
How:   Sort, then sweep a cursor left to right:

    1. Sort by range_start; ties go to the earlier created_at, then to the
       earlier position in the input (the store's insertion order).
    2. For each highlight, its effective start is max(start, cursor). A plain
       segment fills any gap before it, the highlighted segment follows, and
       the cursor moves to its end. A highlight entirely behind the cursor is
       covered by earlier ones and contributes nothing.
    3. A final plain segment runs from the cursor to the end of the text.

    Overlap example (A created before B):
        A = [0, 10)  B = [5, 15)   →   A: [0, 10)   B: [10, 15)

Stale ranges:
    A stored range that no longer fits inside the text (the body shrank after
    the highlight was made) or has no length is dropped from the output and
    its id reported in `stale_ids`. This is not an error. A range that only
    partly runs past the end is dropped whole, not clipped: on an 8-unit
    text, {start=5, length=10} renders nothing.

Guarantee:
    Segments are gapless, never overlap, and their texts concatenate to the
    input text exactly.
"""

import hashlib
import logging
from typing import Iterable, List, Optional

from fireside.offsets import Utf16Text
from fireside.schemas.highlight import Highlight, RenderResult, Segment

logger = logging.getLogger(__name__)


def compute_body_hash(text: str) -> str:
    """SHA-256 hex digest of a body, recorded with each new highlight."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def render(
    text: str,
    highlights: Iterable[Highlight],
    viewer_id: Optional[str] = None,
) -> RenderResult:
    """
    Partition `text` into plain and highlighted segments.

    Args:
        text:       Canonical body of the content item.
        highlights: Highlights for that item, in store (insertion) order.
        viewer_id:  Current user; marks their own highlights as deletable.

    Returns:
        RenderResult with the segments plus stale and drifted highlight ids.
    """
    indexed = Utf16Text(text)
    total = len(indexed)
    items = list(highlights)

    ordered = sorted(
        enumerate(items),
        key=lambda pair: (pair[1].range_start, pair[1].created_at, pair[0]),
    )

    segments: List[Segment] = []
    stale_ids: List[str] = []
    cursor = 0

    def plain(start: int, end: int) -> Segment:
        return Segment(kind="plain", start=start, end=end, text=indexed.slice(start, end))

    for _, hl in ordered:
        if hl.range_length <= 0 or hl.range_end > total:
            stale_ids.append(hl.id)
            continue

        start = max(hl.range_start, cursor)
        end = hl.range_end
        if end <= start:
            continue

        if start > cursor:
            segments.append(plain(cursor, start))

        segments.append(
            Segment(
                kind="highlighted",
                start=start,
                end=end,
                text=indexed.slice(start, end),
                highlight_id=hl.id,
                color=hl.color,
                visibility=hl.visibility,
                note=hl.note,
                deletable=hl.is_owned_by(viewer_id),
            )
        )
        cursor = end

    if cursor < total:
        segments.append(plain(cursor, total))

    if stale_ids:
        logger.debug("Dropped %d stale highlight(s) from render", len(stale_ids))

    current_hash = compute_body_hash(text)
    drifted_ids = [
        hl.id for hl in items
        if hl.body_hash and hl.body_hash != current_hash and hl.id not in stale_ids
    ]

    return RenderResult(segments=segments, stale_ids=stale_ids, drifted_ids=drifted_ids)
