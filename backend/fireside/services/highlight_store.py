"""
Fireside Backend — Highlight Store
====================================

What:  In-memory cache of one user's highlights, keyed by content item id.
How:   content_item_id → {highlight_id → Highlight}, insertion-ordered so the
       renderer can break start/timestamp ties by arrival order.
Who:   Owned by a UserSession; mutated only by load() and the MutationGateway.

Invariants:
    - The store mirrors what the backend says exists. Overlapping ranges are
      kept as-is; resolving them is the renderer's job at read time.
    - load() is all-or-nothing: on a remote error the previous contents are
      untouched and the error propagates to the caller.
    - upsert() and remove() are idempotent.
    - Optimistic entries (tmp_* ids) survive a load() that lands while their
      create call is still in flight.

No locking: every caller runs on the same event loop and no method awaits
between reading and writing the cache.
"""

import logging
from typing import Dict, List, Optional, Sequence

from fireside.schemas.highlight import Highlight
from fireside.services.backend_base import HighlightBackend

logger = logging.getLogger(__name__)


class HighlightStore:
    """Per-user highlight cache backed by a HighlightBackend."""

    def __init__(self, backend: HighlightBackend):
        self._backend = backend
        self._items: Dict[str, Dict[str, Highlight]] = {}

    async def load(self, content_item_ids: Sequence[str]) -> Dict[str, List[Highlight]]:
        """
        Refresh the given content items from the backend.

        Returns:
            content_item_id → highlights, for exactly the requested ids
            (items without highlights map to an empty list).

        Raises:
            Whatever the backend raised; the store is left unchanged.
        """
        ids = list(dict.fromkeys(content_item_ids))
        if not ids:
            return {}

        rows = await self._backend.fetch_highlights(ids)

        fresh: Dict[str, Dict[str, Highlight]] = {cid: {} for cid in ids}
        for hl in rows:
            bucket = fresh.get(hl.content_item_id)
            if bucket is None:
                logger.debug("Ignoring highlight %s for unrequested item %s", hl.id, hl.content_item_id)
                continue
            bucket[hl.id] = hl

        for cid in ids:
            for hl in self._items.get(cid, {}).values():
                if hl.pending:
                    fresh[cid].setdefault(hl.id, hl)

        self._items.update(fresh)
        return {cid: list(bucket.values()) for cid, bucket in fresh.items()}

    def get(self, content_item_id: str) -> List[Highlight]:
        return list(self._items.get(content_item_id, {}).values())

    def find(self, highlight_id: str) -> Optional[Highlight]:
        for bucket in self._items.values():
            hl = bucket.get(highlight_id)
            if hl is not None:
                return hl
        return None

    def upsert(self, content_item_id: str, highlight: Highlight) -> None:
        self._items.setdefault(content_item_id, {})[highlight.id] = highlight

    def remove(self, content_item_id: str, highlight_id: str) -> Optional[Highlight]:
        """Drop a highlight; returns what was removed (None if it was not there)."""
        return self._items.get(content_item_id, {}).pop(highlight_id, None)

    def is_loaded(self, content_item_id: str) -> bool:
        return content_item_id in self._items

    def content_item_ids(self) -> List[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._items.values())
