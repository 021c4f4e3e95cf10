"""
Fireside Backend — Library Route Handler
==========================================

What:  GET /api/library/highlights: the caller's devotion and study
       highlights, newest first.
"""

from fastapi import APIRouter, Depends

from fireside.schemas.content import ErrorResponse, LibraryResponse
from fireside.state import UserSession, get_user_session

router = APIRouter(prefix="/api/library", tags=["Library"])


@router.get(
    "/highlights",
    response_model=LibraryResponse,
    responses={503: {"description": "Backend unavailable", "model": ErrorResponse}},
    summary="All of the caller's highlights",
)
async def list_library_highlights(
    session: UserSession = Depends(get_user_session),
) -> LibraryResponse:
    return await session.library.list_all()
