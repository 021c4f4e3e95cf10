"""
Fireside Backend — Supabase Backend Implementation
====================================================

What:  Async client for the hosted Supabase project: PostgREST tables, RPC
       functions, and the auth user endpoint, called on behalf of one user.
How:   A shared httpx.AsyncClient (owned by AppState) carries the requests;
       each SupabaseBackend adds the anon key and the user's bearer token.
       Responses are mapped onto the Fireside exception hierarchy, and rows are
       normalized by fireside.adapters.
Who:   One instance per signed-in user, held by that user's UserSession.

Resilience Strategy:
    1. Idempotent reads are retried with tenacity (exponential backoff + jitter)
       on transport failures and 5xx responses
    2. Writes (create/delete/insert) are attempted exactly once; the caller
       rolls back its optimistic state on failure
    3. A circuit breaker shared by every user fails fast once the backend has
       failed repeatedly

Status mapping:
    2xx                       → parsed JSON (None for empty bodies)
    401                       → UnauthorizedError(401)
    403 or PostgREST 42501    → UnauthorizedError(403)
    P0001 "not authorized"    → UnauthorizedError(403)  (RPC raise exception)
    other 4xx                 → RemoteRejectedError
    5xx, timeout, network     → RemoteUnavailableError
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from fireside.adapters import current_user_from_row, highlight_from_row
from fireside.config import settings
from fireside.exceptions import (
    CircuitBreakerOpenError,
    RemoteRejectedError,
    RemoteUnavailableError,
    UnauthorizedError,
)
from fireside.schemas.content import CurrentUser
from fireside.schemas.highlight import Highlight, HighlightColor, Visibility
from fireside.services.backend_base import HighlightBackend

logger = logging.getLogger(__name__)

_AUTH_PHRASES = ("not authorized", "not allowed", "permission denied", "not the author")


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding every call to Supabase.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow requests through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Only transport failures and 5xx responses count as failures. A 4xx means
    the backend is up and answered.

    Not thread-safe; all callers share the single event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 30):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns:
            True if the request can proceed (CLOSED, or HALF_OPEN after timeout).

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (backend recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, RemoteUnavailableError) and not isinstance(exc, CircuitBreakerOpenError)


# ══════════════════════════════════════════════════════════════════════════
# Supabase Backend
# ══════════════════════════════════════════════════════════════════════════

class SupabaseBackend(HighlightBackend):
    """
    PostgREST/RPC client for one user.

    Devotion highlight RPCs:
        dev_list_highlights_for_entry(p_entry_id)           → rows
        dev_create_highlight(p_entry_id, p_start_pos, ...)  → new id (or row)
        dev_delete_highlight(p_highlight_id)                → void
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        access_token: str,
        circuit_breaker: CircuitBreaker,
        anon_key: Optional[str] = None,
        user_id: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self._http = http
        self.access_token = access_token
        self.circuit_breaker = circuit_breaker
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.user_id = user_id
        self.retry_attempts = retry_attempts or settings.retry_max_attempts
        self.retry_min_wait = settings.retry_min_wait if retry_min_wait is None else retry_min_wait
        self.retry_max_wait = settings.retry_max_wait if retry_max_wait is None else retry_max_wait

    # ── Transport ─────────────────────────────────────────────────────────

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        idempotent: bool = False,
    ) -> Any:
        """
        Send one logical request, retrying only when `idempotent` is set.

        Raises:
            CircuitBreakerOpenError: the breaker is open
            RemoteUnavailableError:  transport failure or 5xx (after retries)
            UnauthorizedError / RemoteRejectedError: the backend refused
        """
        self.circuit_breaker.can_execute()
        request_id = str(uuid.uuid4())[:8]

        try:
            if idempotent:
                retrying = AsyncRetrying(
                    retry=retry_if_exception(_is_retryable),
                    stop=stop_after_attempt(self.retry_attempts),
                    wait=wait_exponential_jitter(
                        initial=self.retry_min_wait,
                        max=self.retry_max_wait,
                        jitter=self.retry_min_wait,
                    ),
                    before_sleep=before_sleep_log(logger, logging.WARNING),
                    reraise=True,
                )
                result = None
                async for attempt in retrying:
                    with attempt:
                        result = await self._send(method, path, params, json, headers, request_id)
            else:
                result = await self._send(method, path, params, json, headers, request_id)
        except RemoteUnavailableError:
            self.circuit_breaker.record_failure()
            raise

        self.circuit_breaker.record_success()
        return result

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]],
        json: Any,
        headers: Optional[Dict[str, str]],
        request_id: str,
    ) -> Any:
        start_time = time.time()
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(headers),
            )
        except httpx.TimeoutException as e:
            logger.warning("[%s] %s %s timed out: %s", request_id, method, path, e)
            raise RemoteUnavailableError(
                message="The backend did not respond in time",
                context={"request_id": request_id, "path": path},
            ) from e
        except httpx.TransportError as e:
            logger.warning("[%s] %s %s failed: %s", request_id, method, path, e)
            raise RemoteUnavailableError(
                context={"request_id": request_id, "path": path, "error_type": type(e).__name__},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "[%s] %s %s → %d in %.0fms",
            request_id, method, path, response.status_code, duration_ms,
        )
        return self._parse_response(response, request_id)

    @staticmethod
    def _parse_response(response: httpx.Response, request_id: str) -> Any:
        status = response.status_code
        if 200 <= status < 300:
            if status == 204 or not response.content:
                return None
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.text
            or f"HTTP {status}"
        )
        code = body.get("code")
        ctx = {"request_id": request_id, "status": status}
        if code:
            ctx["code"] = code

        if status >= 500:
            raise RemoteUnavailableError(message=str(message), context=ctx)
        if status == 401:
            raise UnauthorizedError(message=str(message), status_code=401, context=ctx)
        if status == 403 or code == "42501":
            raise UnauthorizedError(message=str(message), status_code=403, context=ctx)
        if code == "P0001" and any(p in str(message).lower() for p in _AUTH_PHRASES):
            raise UnauthorizedError(message=str(message), status_code=403, context=ctx)
        raise RemoteRejectedError(message=str(message), code=code, context=ctx)

    # ── Generic PostgREST helpers ─────────────────────────────────────────

    async def rpc(self, function: str, params: Dict[str, Any], read: bool = False) -> Any:
        """Call a Postgres function; `read` marks it safe to retry."""
        return await self._request(
            "POST", f"/rest/v1/rpc/{function}", json=params, idempotent=read,
        )

    async def select(
        self, table: str, filters: Dict[str, str], columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """GET rows; `filters` are PostgREST operators, e.g. {"id": "eq.42"}."""
        params = {"select": columns, **filters}
        rows = await self._request("GET", f"/rest/v1/{table}", params=params, idempotent=True)
        return rows or []

    async def insert(self, table: str, payload: Dict[str, Any]) -> None:
        await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=payload,
            headers={"Prefer": "return=minimal"},
        )

    async def delete(self, table: str, filters: Dict[str, str]) -> None:
        await self._request("DELETE", f"/rest/v1/{table}", params=filters)

    async def get_current_user(self) -> CurrentUser:
        """Resolve the bearer token to a user; remembers the id for later calls."""
        row = await self._request("GET", "/auth/v1/user", idempotent=True)
        user = current_user_from_row(row or {})
        if not user.id:
            raise UnauthorizedError(message="No user is signed in", status_code=401)
        self.user_id = user.id
        return user

    # ── HighlightBackend ──────────────────────────────────────────────────

    async def fetch_highlights(self, content_item_ids: Sequence[str]) -> List[Highlight]:
        """
        One RPC per entry, issued concurrently. Any failure fails the whole call.
        """
        ids = list(dict.fromkeys(content_item_ids))
        if not ids:
            return []

        results = await asyncio.gather(
            *(
                self.rpc("dev_list_highlights_for_entry", {"p_entry_id": cid}, read=True)
                for cid in ids
            )
        )

        highlights: List[Highlight] = []
        for cid, rows in zip(ids, results):
            for row in rows or []:
                highlights.append(highlight_from_row(row, content_item_id=cid))
        logger.info("Fetched %d highlight(s) for %d entr(ies)", len(highlights), len(ids))
        return highlights

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
        result = await self.rpc(
            "dev_create_highlight",
            {
                "p_entry_id": content_item_id,
                "p_start_pos": start,
                "p_length": length,
                "p_selected_text": text,
                "p_visibility": Visibility(visibility).value,
                "p_color": HighlightColor(color).value,
                "p_note": note,
                "p_body_hash": body_hash,
            },
        )

        # The RPC returns the new id; some deployments return the full row
        if isinstance(result, list):
            result = result[0] if result else None
        if isinstance(result, dict):
            return highlight_from_row(result, content_item_id=content_item_id, owner_id=self.user_id)
        if not result:
            raise RemoteRejectedError(message="Backend did not return the new highlight id")

        return Highlight(
            id=str(result),
            content_item_id=content_item_id,
            owner_id=self.user_id or "",
            range_start=start,
            range_length=length,
            selected_text=text,
            color=color,
            visibility=visibility,
            note=note,
            body_hash=body_hash,
            created_at=datetime.now(timezone.utc),
        )

    async def delete_highlight(self, highlight_id: str) -> None:
        await self.rpc("dev_delete_highlight", {"p_highlight_id": highlight_id})
