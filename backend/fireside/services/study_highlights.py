"""
Fireside Backend — Study Sentence Highlights
==============================================

What:  Sentence-index highlights on study entries: the reader clicks a
       sentence to toggle it on or off.
How:   Rows live in `study_highlights` as
       {entry_id, user_id, text, loc: {"sentence_index": n}, note}.
       A local entry → indices cache gives optimistic toggles; a failed
       remote write flips the index back and re-raises.

Unlike devotion highlights, the sentence index IS the stored identity here,
so editing a study entry's text can shift which sentence an index refers to.
"""

import logging
from typing import Dict, List, Optional, Set

from fireside.adapters import sentence_index_from_loc
from fireside.services.content_service import STUDY_ENTRIES_TABLE
from fireside.services.supabase_service import SupabaseBackend

logger = logging.getLogger(__name__)

STUDY_HIGHLIGHTS_TABLE = "study_highlights"


class StudyHighlightService:

    def __init__(self, backend: SupabaseBackend, user_id: str):
        self._backend = backend
        self._user_id = user_id
        self._indices: Dict[str, Set[int]] = {}

    def indices(self, entry_id: str) -> List[int]:
        return sorted(self._indices.get(entry_id, set()))

    async def list_for_series(self, series_id: str) -> Dict[str, List[int]]:
        """
        The caller's highlighted sentence indices for every entry of a series.

        Returns:
            entry_id → distinct indices in ascending order (entries with none
            are omitted). Rows whose `loc` has no integer index are skipped.
        """
        entries = await self._backend.select(
            STUDY_ENTRIES_TABLE, {"series_id": f"eq.{series_id}"}, columns="id",
        )
        entry_ids = [str(row["id"]) for row in entries if row.get("id") is not None]
        if not entry_ids:
            return {}

        rows = await self._backend.select(
            STUDY_HIGHLIGHTS_TABLE,
            {
                "user_id": f"eq.{self._user_id}",
                "entry_id": f"in.({','.join(entry_ids)})",
            },
            columns="entry_id,loc",
        )

        found: Dict[str, Set[int]] = {}
        for row in rows:
            idx = sentence_index_from_loc(row)
            if idx is None:
                continue
            found.setdefault(str(row.get("entry_id")), set()).add(idx)

        for entry_id in entry_ids:
            self._indices[entry_id] = found.get(entry_id, set())

        return {entry_id: sorted(idxs) for entry_id, idxs in found.items()}

    async def _load_entry(self, entry_id: str) -> None:
        rows = await self._backend.select(
            STUDY_HIGHLIGHTS_TABLE,
            {"user_id": f"eq.{self._user_id}", "entry_id": f"eq.{entry_id}"},
            columns="loc",
        )
        found = {sentence_index_from_loc(row) for row in rows}
        found.discard(None)
        self._indices[entry_id] = found

    async def toggle(
        self,
        entry_id: str,
        sentence_index: int,
        text: str,
        note: Optional[str] = None,
    ) -> bool:
        """
        Flip one sentence. Returns True if it is highlighted afterwards.

        An entry this session has not seen yet is read from the backend
        first, so a sentence highlighted in an earlier session is cleared
        rather than inserted twice.

        Raises:
            Any backend error, after the local flip has been undone.
        """
        if entry_id not in self._indices:
            await self._load_entry(entry_id)

        current = self._indices[entry_id]
        was_on = sentence_index in current
        if was_on:
            current.discard(sentence_index)
        else:
            current.add(sentence_index)

        try:
            if was_on:
                await self._backend.delete(
                    STUDY_HIGHLIGHTS_TABLE,
                    {
                        "user_id": f"eq.{self._user_id}",
                        "entry_id": f"eq.{entry_id}",
                        "loc": f'cs.{{"sentence_index":{sentence_index}}}',
                    },
                )
            else:
                await self._backend.insert(
                    STUDY_HIGHLIGHTS_TABLE,
                    {
                        "entry_id": entry_id,
                        "user_id": self._user_id,
                        "text": text.strip(),
                        "loc": {"sentence_index": sentence_index},
                        "note": note,
                    },
                )
        except Exception:
            if was_on:
                current.add(sentence_index)
            else:
                current.discard(sentence_index)
            logger.warning(
                "Toggle of sentence %d on study entry %s failed; reverted",
                sentence_index, entry_id,
            )
            raise

        return not was_on
