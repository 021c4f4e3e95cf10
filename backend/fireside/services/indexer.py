"""
Fireside Backend — Offset Indexer
===================================

What:  Turns a content body into addressable ranges, either one per sentence or
       one per free-form browser selection.
How:   Both modes produce UTF-16 offsets into the canonical body (the raw text
       stored by the backend), so ranges from either mode can be mixed freely.
Who:   Called by the highlight routes before handing a range to the gateway,
       and by the render route to send sentence boundaries to the client.

Sentence boundary convention:
    A sentence ends right after each '.', '!' or '?'. Whitespace following
    the punctuation starts the next sentence. No abbreviation or quote
    handling. A trailing fragment without punctuation is its own sentence.

        "Hello world. How are you? Fine!"
        → 0: "Hello world."   1: " How are you?"   2: " Fine!"
"""

import logging
from typing import List, Optional, Sequence

from fireside.exceptions import ValidationError
from fireside.offsets import Utf16Text, utf16_len
from fireside.schemas.highlight import SelectionPoint, SentenceRange, TextRange

logger = logging.getLogger(__name__)

SENTENCE_TERMINATORS = frozenset(".!?")


def sentence_ranges(text: str) -> List[SentenceRange]:
    """
    Split `text` into gapless sentence ranges in a single linear pass.

    Returns:
        Ranges covering the whole text in order; empty list for empty text.
    """
    indexed = Utf16Text(text)
    ranges: List[SentenceRange] = []
    begin = 0

    def emit(end: int) -> None:
        ranges.append(
            SentenceRange(
                index=len(ranges),
                start=indexed.to_offset(begin),
                end=indexed.to_offset(end),
                text=text[begin:end],
            )
        )

    for i, ch in enumerate(text):
        if ch in SENTENCE_TERMINATORS:
            emit(i + 1)
            begin = i + 1

    if begin < len(text):
        emit(len(text))

    return ranges


def sentence_at(text: str, index: int) -> SentenceRange:
    """Sentence `index` of `text`, or ValidationError when there is none."""
    ranges = sentence_ranges(text)
    if index < 0 or index >= len(ranges):
        raise ValidationError(
            message=f"Sentence {index} does not exist; the entry has {len(ranges)} sentences",
            field="sentence_index",
        )
    return ranges[index]


def selection_to_range(
    text: str,
    nodes: Sequence[str],
    anchor: SelectionPoint,
    focus: SelectionPoint,
) -> Optional[TextRange]:
    """
    Convert a browser selection inside the tracked container into a text range.

    Args:
        text:   Canonical body of the content item.
        nodes:  Text of each rendered text node of the container, in order.
        anchor: Where the selection started (node index + UTF-16 offset).
        focus:  Where it ended; may come before the anchor.

    Returns:
        TextRange against `text`, or None when the selection is empty,
        collapsed, or not inside the container.
    """
    if "".join(nodes) != text:
        logger.debug("Selection container does not match the canonical text; ignoring")
        return None

    node_lengths = [utf16_len(node) for node in nodes]

    def absolute(point: SelectionPoint) -> Optional[int]:
        if not 0 <= point.node_index < len(nodes):
            return None
        if not 0 <= point.offset <= node_lengths[point.node_index]:
            return None
        return sum(node_lengths[: point.node_index]) + point.offset

    a = absolute(anchor)
    f = absolute(focus)
    if a is None or f is None:
        return None

    start, end = min(a, f), max(a, f)
    if start == end:
        return None

    selected = Utf16Text(text).slice(start, end)
    if not selected.strip():
        return None

    return TextRange(start=start, length=end - start, text=selected)
