"""
Fireside Backend — Devotion Highlight Route Handlers
======================================================

What:  Render a devotion entry with its highlights, create a highlight from a
       sentence click / free selection / explicit range, delete a highlight.
How:   Thin handlers: resolve the caller's UserSession, turn the gesture into a
       TextRange with the indexer, delegate to the store/gateway/renderer.

Request Flow (create):
    1. Fetch the entry body (the canonical text for offsets)
    2. Indexer maps the gesture to {start, length, text}
    3. MutationGateway inserts optimistically, calls the backend, confirms
    4. 201 Created with the confirmed highlight
       (204 No Content when the selection was empty or outside the entry)
"""

import logging

from fastapi import APIRouter, Depends, Response

from fireside.config import settings
from fireside.exceptions import ValidationError
from fireside.offsets import Utf16Text
from fireside.schemas.content import ErrorResponse, RenderResponse
from fireside.schemas.highlight import (
    Highlight,
    HighlightCreateRequest,
    HighlightMetadata,
    TextRange,
)
from fireside.services.indexer import selection_to_range, sentence_at, sentence_ranges
from fireside.services.renderer import compute_body_hash, render
from fireside.state import UserSession, get_user_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Highlights"])


@router.get(
    "/devotions/entries/{entry_id}/render",
    response_model=RenderResponse,
    responses={
        401: {"description": "Not signed in", "model": ErrorResponse},
        404: {"description": "Entry not found", "model": ErrorResponse},
        503: {"description": "Backend unavailable", "model": ErrorResponse},
    },
    summary="Render a devotion entry with the caller's highlights",
)
async def render_entry(
    entry_id: str,
    session: UserSession = Depends(get_user_session),
) -> RenderResponse:
    """
    Refresh the entry's highlights, then partition its body into segments.

    The entry is fetched before its highlights, so a missing entry (404)
    never touches the store. A failed refresh propagates (503) and leaves
    the cached highlights as they were.
    """
    item = await session.content.get_devotion_entry(entry_id)
    loaded = await session.store.load([entry_id])
    highlights = loaded.get(entry_id, [])
    result = render(item.body, highlights, viewer_id=session.user_id)
    return RenderResponse(
        item=item,
        highlights=highlights,
        sentences=sentence_ranges(item.body),
        render=result,
    )


@router.post(
    "/devotions/entries/{entry_id}/highlights",
    status_code=201,
    response_model=Highlight,
    responses={
        201: {"description": "Highlight created", "model": Highlight},
        204: {"description": "Selection was empty; nothing created"},
        400: {"description": "Range does not fit the entry", "model": ErrorResponse},
        503: {"description": "Backend unavailable", "model": ErrorResponse},
    },
    summary="Highlight a sentence, a selection, or an explicit range",
)
async def create_highlight(
    entry_id: str,
    payload: HighlightCreateRequest,
    session: UserSession = Depends(get_user_session),
):
    item = await session.content.get_devotion_entry(entry_id)
    body = item.body

    if payload.sentence_index is not None:
        sentence = sentence_at(body, payload.sentence_index).trimmed()
        text_range = sentence.to_text_range()
        if text_range.length == 0:
            raise ValidationError(message="That sentence is blank", field="sentence_index")
    elif payload.selection is not None:
        sel = payload.selection
        text_range = selection_to_range(body, sel.nodes, sel.anchor, sel.focus)
        if text_range is None:
            logger.debug("Ignoring empty or out-of-container selection on %s", entry_id)
            return Response(status_code=204)
    else:
        indexed = Utf16Text(body)
        end = payload.start + payload.length
        if end > len(indexed):
            raise ValidationError(
                message=f"Range [{payload.start}, {end}) is outside the entry (length {len(indexed)})",
                field="length",
            )
        text_range = TextRange(
            start=payload.start,
            length=payload.length,
            text=indexed.slice(payload.start, end),
        )

    metadata = HighlightMetadata(
        color=payload.color or settings.default_highlight_color,
        visibility=payload.visibility or settings.default_highlight_visibility,
        note=payload.note,
    )
    return await session.gateway.create(
        entry_id, text_range, metadata, body_hash=compute_body_hash(body),
    )


@router.delete(
    "/highlights/{highlight_id}",
    status_code=204,
    responses={
        403: {"description": "Not the author", "model": ErrorResponse},
        503: {"description": "Backend unavailable", "model": ErrorResponse},
    },
    summary="Delete one of the caller's highlights",
)
async def delete_highlight(
    highlight_id: str,
    session: UserSession = Depends(get_user_session),
) -> Response:
    """The backend decides authorship; a refusal comes back as 403."""
    await session.gateway.delete(highlight_id)
    return Response(status_code=204)
