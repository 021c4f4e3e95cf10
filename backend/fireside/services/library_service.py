"""
Fireside Backend — Library Service
====================================

What:  The "My highlights" library: everything the caller highlighted across
       devotions and study series.
How:   Two read RPCs, run concurrently, normalized and de-duplicated, newest
       first.
"""

import asyncio
import logging
from typing import List

from fireside.adapters import dedupe_newest_first, library_item_from_row
from fireside.schemas.content import LibraryHighlightItem, LibraryResponse
from fireside.services.supabase_service import SupabaseBackend

logger = logging.getLogger(__name__)


class LibraryService:

    def __init__(self, backend: SupabaseBackend):
        self._backend = backend

    async def list_devotion_highlights(self) -> List[LibraryHighlightItem]:
        rows = await self._backend.rpc("dev_list_my_highlights", {}, read=True)
        return dedupe_newest_first(library_item_from_row(r, "devotion") for r in rows or [])

    async def list_study_highlights(self) -> List[LibraryHighlightItem]:
        rows = await self._backend.rpc("sg_list_my_highlights", {}, read=True)
        return dedupe_newest_first(library_item_from_row(r, "study") for r in rows or [])

    async def list_all(self) -> LibraryResponse:
        devotions, study = await asyncio.gather(
            self.list_devotion_highlights(),
            self.list_study_highlights(),
        )
        return LibraryResponse(devotions=devotions, study=study)
