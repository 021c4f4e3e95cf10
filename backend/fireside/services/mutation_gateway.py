"""
Fireside Backend — Mutation Gateway
=====================================

What:  Turns a highlight gesture into a durable highlight, with an optimistic
       local update and rollback on failure.
Who:   Called by the highlight route handlers through the caller's UserSession.

Create flow:
    ┌──────────────┐    ┌────────────────┐    ┌──────────────────────────┐
    │ insert tmp_* │───▶│ backend create │───▶│ swap tmp_* for confirmed │
    │ into store   │    └────────────────┘    └──────────────────────────┘
    └──────────────┘            │ error
                                ▼
                      remove tmp_*, re-raise

Delete flow:
    remove from store → backend delete → (error) re-insert, re-raise

No retries, queueing or request ordering happen here. Two rapid mutations on
the same highlight resolve in whatever order their responses arrive. The
gateway does not check authorship; the backend does and its refusal
(UnauthorizedError) propagates unchanged.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fireside.exceptions import ValidationError
from fireside.schemas.highlight import Highlight, HighlightMetadata, TextRange
from fireside.services.backend_base import HighlightBackend
from fireside.services.highlight_store import HighlightStore

logger = logging.getLogger(__name__)


class MutationGateway:
    """Optimistic create/delete on top of a HighlightStore."""

    def __init__(self, store: HighlightStore, backend: HighlightBackend, owner_id: str):
        self._store = store
        self._backend = backend
        self._owner_id = owner_id

    async def create(
        self,
        content_item_id: str,
        text_range: TextRange,
        metadata: HighlightMetadata,
        body_hash: Optional[str] = None,
    ) -> Highlight:
        """
        Create a highlight, visible in the store before the backend confirms it.

        Returns:
            The confirmed Highlight (backend id, owner and timestamp).

        Raises:
            Any backend error, after the optimistic entry has been removed.
        """
        if text_range.length <= 0:
            raise ValidationError(message="Cannot highlight an empty range", field="length")

        optimistic = Highlight(
            id=f"tmp_{uuid.uuid4().hex}",
            content_item_id=content_item_id,
            owner_id=self._owner_id,
            range_start=text_range.start,
            range_length=text_range.length,
            selected_text=text_range.text,
            color=metadata.color,
            visibility=metadata.visibility,
            note=metadata.note,
            body_hash=body_hash,
            created_at=datetime.now(timezone.utc),
        )
        self._store.upsert(content_item_id, optimistic)

        try:
            confirmed = await self._backend.create_highlight(
                content_item_id,
                text_range.start,
                text_range.length,
                text_range.text,
                metadata.color,
                metadata.visibility,
                note=metadata.note,
                body_hash=body_hash,
            )
        except Exception:
            self._store.remove(content_item_id, optimistic.id)
            logger.warning(
                "Create highlight on %s failed; rolled back %s", content_item_id, optimistic.id,
            )
            raise

        self._store.remove(content_item_id, optimistic.id)
        self._store.upsert(content_item_id, confirmed)
        logger.info("Created highlight %s on %s", confirmed.id, content_item_id)
        return confirmed

    async def delete(self, highlight_id: str) -> None:
        """
        Delete a highlight, gone from the store before the backend confirms.

        A highlight missing from the store is still deleted remotely; there is
        just nothing to restore if that fails.

        Raises:
            ValidationError: the highlight is still being created.
            Any backend error, after the removed entry has been restored.
        """
        if highlight_id.startswith("tmp_"):
            raise ValidationError(
                message="This highlight is still being saved; try again in a moment",
                field="highlight_id",
            )

        removed = self._store.find(highlight_id)
        if removed is not None:
            self._store.remove(removed.content_item_id, highlight_id)

        try:
            await self._backend.delete_highlight(highlight_id)
        except Exception:
            if removed is not None:
                self._store.upsert(removed.content_item_id, removed)
            logger.warning("Delete highlight %s failed; restored local copy", highlight_id)
            raise

        logger.info("Deleted highlight %s", highlight_id)
