"""
Fireside Backend — Application State & Session Dependencies
=============================================================

What:  The explicit application-state context: shared HTTP client, shared
       circuit breaker, and one UserSession (highlight store, gateway, study
       cache) per signed-in user.
How:   AppState is created by the FastAPI lifespan (startup → open the HTTP
       client; shutdown → close it and drop every session) and reached from
       routes through Depends(get_user_session). Nothing per-user lives in
       module globals.
Who:   Route handlers; tests build their own AppState with a mock transport.

Session lifecycle:
    1. Request arrives with "Authorization: Bearer <supabase access token>"
    2. The token is resolved to a user via /auth/v1/user
    3. The user's existing session is reused (token refreshed) or a new one is
       created with an empty store; stores hydrate lazily via load()
    4. Least recently used sessions are evicted beyond `max_sessions`
"""

import logging
from collections import OrderedDict
from typing import Optional

import httpx
from fastapi import Depends, Header, Request

from fireside.config import Settings, settings
from fireside.exceptions import UnauthorizedError
from fireside.services.content_service import ContentService
from fireside.services.highlight_store import HighlightStore
from fireside.services.library_service import LibraryService
from fireside.services.mutation_gateway import MutationGateway
from fireside.services.study_highlights import StudyHighlightService
from fireside.services.supabase_service import CircuitBreaker, SupabaseBackend

logger = logging.getLogger(__name__)


class UserSession:
    """Everything that belongs to one signed-in user."""

    def __init__(self, user_id: str, backend: SupabaseBackend):
        self.user_id = user_id
        self.backend = backend
        self.store = HighlightStore(backend)
        self.gateway = MutationGateway(self.store, backend, owner_id=user_id)
        self.study = StudyHighlightService(backend, user_id)
        self.content = ContentService(backend)
        self.library = LibraryService(backend)


class AppState:
    """
    Application-wide state with an explicit init/teardown contract.

    Args:
        config:       Settings to use (defaults to the module singleton).
        transport:    Optional httpx transport (tests pass httpx.MockTransport).
        max_sessions: Cap on cached user sessions.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_sessions: int = 1000,
    ):
        self.config = config or settings
        self._transport = transport
        self.max_sessions = max_sessions
        self.http: Optional[httpx.AsyncClient] = None
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.cb_failure_threshold,
            recovery_timeout=self.config.cb_recovery_timeout,
        )
        self._sessions: "OrderedDict[str, UserSession]" = OrderedDict()

    async def startup(self) -> None:
        self.http = httpx.AsyncClient(
            base_url=self.config.supabase_url,
            timeout=self.config.http_timeout,
            limits=httpx.Limits(max_connections=self.config.http_max_connections),
            transport=self._transport,
        )
        logger.info("Supabase client ready for %s", self.config.supabase_url)

    async def shutdown(self) -> None:
        self._sessions.clear()
        if self.http is not None:
            await self.http.aclose()
            self.http = None
        logger.info("Application state torn down")

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _backend(self, access_token: str) -> SupabaseBackend:
        if self.http is None:
            raise RuntimeError("AppState.startup() has not been called")
        return SupabaseBackend(
            self.http,
            access_token,
            self.circuit_breaker,
            anon_key=self.config.supabase_anon_key,
            retry_attempts=self.config.retry_max_attempts,
            retry_min_wait=self.config.retry_min_wait,
            retry_max_wait=self.config.retry_max_wait,
        )

    async def session_for(self, access_token: str) -> UserSession:
        """Resolve a token to the user's session, creating it on first use."""
        probe = self._backend(access_token)
        user = await probe.get_current_user()

        session = self._sessions.get(user.id)
        if session is None:
            session = UserSession(user.id, probe)
            self._sessions[user.id] = session
            logger.info("Opened session for user %s", user.id)
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted idle session for user %s", evicted)
        else:
            session.backend.access_token = access_token
            self._sessions.move_to_end(user.id)
        return session

    def drop_session(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)


# ── Dependencies ──────────────────────────────────────────────────────────

def get_app_state(request: Request) -> AppState:
    return request.app.state.fireside


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Extract the Supabase access token from the Authorization header."""
    if not authorization:
        raise UnauthorizedError(message="Missing Authorization header", status_code=401)
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError(message="Authorization must be 'Bearer <token>'", status_code=401)
    return token.strip()


async def get_user_session(
    token: str = Depends(bearer_token),
    state: AppState = Depends(get_app_state),
) -> UserSession:
    """
    FastAPI dependency returning the caller's UserSession.

    Example usage in a route:
        @router.get("/api/library/highlights")
        async def library(session: UserSession = Depends(get_user_session)):
            return await session.library.list_all()
    """
    return await state.session_for(token)
