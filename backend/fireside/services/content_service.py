"""
Fireside Backend — Content Service
====================================

What:  Reads devotion and study entries (the text that highlights sit on).
How:   PostgREST selects by id; rows go through content_item_from_row so the
       body field is found whatever the table calls it.
"""

import logging

from fireside.adapters import content_item_from_row
from fireside.exceptions import NotFoundError
from fireside.schemas.content import ContentItem
from fireside.services.supabase_service import SupabaseBackend

logger = logging.getLogger(__name__)

DEVOTION_ENTRIES_TABLE = "devotion_entries"
STUDY_ENTRIES_TABLE = "study_entries"


class ContentService:

    def __init__(self, backend: SupabaseBackend):
        self._backend = backend

    async def get_devotion_entry(self, entry_id: str) -> ContentItem:
        return await self._get(DEVOTION_ENTRIES_TABLE, entry_id, "devotion_entry")

    async def get_study_entry(self, entry_id: str) -> ContentItem:
        return await self._get(STUDY_ENTRIES_TABLE, entry_id, "study_entry")

    async def _get(self, table: str, entry_id: str, kind: str) -> ContentItem:
        rows = await self._backend.select(table, {"id": f"eq.{entry_id}"})
        if not rows:
            raise NotFoundError(resource=kind.replace("_", " "), resource_id=entry_id)
        return content_item_from_row(rows[0], kind)
