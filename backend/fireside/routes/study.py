"""
Fireside Backend — Study Highlight Route Handlers
===================================================

What:  Sentence-index highlights on study entries.
       GET  /api/study/series/{series_id}/highlights
       POST /api/study/entries/{entry_id}/sentences/{index}/toggle
"""

import logging

from fastapi import APIRouter, Depends, Path

from fireside.schemas.content import ErrorResponse, StudySeriesHighlights, StudyToggleResponse
from fireside.services.indexer import sentence_at
from fireside.state import UserSession, get_user_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/study", tags=["Study"])


@router.get(
    "/series/{series_id}/highlights",
    response_model=StudySeriesHighlights,
    summary="Highlighted sentence indices per entry of a series",
)
async def list_series_highlights(
    series_id: str,
    session: UserSession = Depends(get_user_session),
) -> StudySeriesHighlights:
    entries = await session.study.list_for_series(series_id)
    return StudySeriesHighlights(series_id=series_id, entries=entries)


@router.post(
    "/entries/{entry_id}/sentences/{index}/toggle",
    response_model=StudyToggleResponse,
    responses={
        400: {"description": "No such sentence", "model": ErrorResponse},
        503: {"description": "Backend unavailable; toggle reverted", "model": ErrorResponse},
    },
    summary="Toggle the highlight on one sentence of a study entry",
)
async def toggle_sentence(
    entry_id: str,
    index: int = Path(ge=0),
    session: UserSession = Depends(get_user_session),
) -> StudyToggleResponse:
    item = await session.content.get_study_entry(entry_id)
    sentence = sentence_at(item.body, index)
    highlighted = await session.study.toggle(entry_id, index, sentence.text)
    logger.info("Sentence %d of %s %s", index, entry_id, "highlighted" if highlighted else "cleared")
    return StudyToggleResponse(
        entry_id=entry_id,
        sentence_index=index,
        highlighted=highlighted,
        indices=session.study.indices(entry_id),
    )
