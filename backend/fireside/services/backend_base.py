"""
Fireside Backend — Abstract Highlight Backend Interface
=========================================================

What:  Abstract base class for the remote collaborator that owns highlights.
Why:   The store and the mutation gateway only need three operations; keeping
       them behind an interface lets tests drive those components with an
       in-memory fake and keeps Supabase specifics in one module.
How:   SupabaseBackend implements this over PostgREST RPC calls.
Who:   Called by HighlightStore.load() and MutationGateway.create()/delete().
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from fireside.schemas.highlight import Highlight, HighlightColor, Visibility


class HighlightBackend(ABC):
    """
    Contract:
        - fetch_highlights() returns every highlight the caller may see for the
          given content items, or raises; it never returns a partial result
        - create_highlight() returns the confirmed highlight with the
          backend-assigned id, owner and timestamp
        - delete_highlight() succeeds or raises; authorship is enforced remotely
        - Failures are FiresideError subclasses (RemoteUnavailableError,
          UnauthorizedError, RemoteRejectedError)
    """

    @abstractmethod
    async def fetch_highlights(self, content_item_ids: Sequence[str]) -> List[Highlight]:
        """Read all highlights for the given content items."""
        ...

    @abstractmethod
    async def create_highlight(
        self,
        content_item_id: str,
        start: int,
        length: int,
        text: str,
        color: HighlightColor,
        visibility: Visibility,
        note: Optional[str] = None,
        body_hash: Optional[str] = None,
    ) -> Highlight:
        """Persist a new highlight."""
        ...

    @abstractmethod
    async def delete_highlight(self, highlight_id: str) -> None:
        """Delete a highlight; only its author may do so."""
        ...
