"""
Fireside Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── memory_backend:  In-memory HighlightBackend for store/gateway tests
    ├── make_highlight:  Factory for Highlight models
    ├── supabase:        FakeSupabase, a stateful httpx.MockTransport handler
    ├── app_state:       AppState started against the fake Supabase
    ├── supabase_backend: SupabaseBackend for user-alice on the fake
    └── test_client:     HTTPX AsyncClient bound to the app via ASGITransport
"""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import unquote

# Override settings for testing BEFORE any fireside imports
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MAX_ATTEMPTS"] = "3"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fireside.exceptions import RemoteUnavailableError
from fireside.schemas.highlight import Highlight, HighlightColor, Visibility
from fireside.services.backend_base import HighlightBackend

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

ALICE = "user-alice"
BOB = "user-bob"
TOKENS = {"token-alice": ALICE, "token-bob": BOB}
ALICE_AUTH = {"Authorization": "Bearer token-alice"}
BOB_AUTH = {"Authorization": "Bearer token-bob"}

DEVOTION_BODY = "Be still, and know. I am God! Will you rest? Yes"
STUDY_BODY = "In the beginning was the Word. The Word was with God. And the Word was God."


# ══════════════════════════════════════════════════════════════════════════
# Model Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_highlight():
    """
    Factory for Highlight instances.

    Usage:
        hl = make_highlight("h1", 0, 5)                 # created at BASE_TIME
        hl = make_highlight("h2", 3, 4, minutes=2)      # two minutes later
    """

    def _make(
        highlight_id: str,
        start: int,
        length: int,
        content_item_id: str = "entry-1",
        owner_id: str = ALICE,
        minutes: int = 0,
        **kwargs,
    ) -> Highlight:
        return Highlight(
            id=highlight_id,
            content_item_id=content_item_id,
            owner_id=owner_id,
            range_start=start,
            range_length=length,
            created_at=BASE_TIME + timedelta(minutes=minutes),
            **kwargs,
        )

    return _make


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Highlight Backend
# ══════════════════════════════════════════════════════════════════════════

class MemoryBackend(HighlightBackend):
    """
    HighlightBackend kept in a dict; `fail_with` makes every call raise.

    `calls` records (operation, argument) pairs so tests can assert on them.
    """

    def __init__(self, owner_id: str = ALICE):
        self.owner_id = owner_id
        self.rows: Dict[str, Highlight] = {}
        self.fail_with: Optional[Exception] = None
        self.calls: List[tuple] = []
        self._next_id = 1

    def seed(self, *highlights: Highlight) -> None:
        for hl in highlights:
            self.rows[hl.id] = hl

    async def fetch_highlights(self, content_item_ids: Sequence[str]) -> List[Highlight]:
        self.calls.append(("fetch", tuple(content_item_ids)))
        if self.fail_with:
            raise self.fail_with
        wanted = set(content_item_ids)
        return [hl for hl in self.rows.values() if hl.content_item_id in wanted]

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
        self.calls.append(("create", content_item_id))
        if self.fail_with:
            raise self.fail_with
        hl = Highlight(
            id=f"hl-{self._next_id}",
            content_item_id=content_item_id,
            owner_id=self.owner_id,
            range_start=start,
            range_length=length,
            selected_text=text,
            color=color,
            visibility=visibility,
            note=note,
            body_hash=body_hash,
            created_at=BASE_TIME,
        )
        self._next_id += 1
        self.rows[hl.id] = hl
        return hl

    async def delete_highlight(self, highlight_id: str) -> None:
        self.calls.append(("delete", highlight_id))
        if self.fail_with:
            raise self.fail_with
        self.rows.pop(highlight_id, None)


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def unavailable():
    return RemoteUnavailableError(message="network down")


# ══════════════════════════════════════════════════════════════════════════
# Fake Supabase (httpx.MockTransport handler)
# ══════════════════════════════════════════════════════════════════════════

class FakeSupabase:
    """
    Stateful stand-in for the Supabase REST surface the service uses.

    Knobs:
        status_override: path → HTTP status to return instead of handling
        connect_error:   set of paths that raise httpx.ConnectError
        requests:        every httpx.Request seen, in order
    """

    def __init__(self):
        self.devotion_entries: Dict[str, Dict[str, Any]] = {
            "dev-1": {"id": "dev-1", "day_title": "Day 1: Stillness", "body_md": DEVOTION_BODY},
        }
        self.study_entries: Dict[str, Dict[str, Any]] = {
            "study-1": {"id": "study-1", "series_id": "series-1", "title": "John 1", "content": STUDY_BODY},
            "study-2": {"id": "study-2", "series_id": "series-1", "title": "John 2", "content": "Come and see."},
        }
        self.highlights: Dict[str, Dict[str, Any]] = {}
        self.study_highlights: List[Dict[str, Any]] = []
        self.status_override: Dict[str, int] = {}
        self.connect_error: set = set()
        self.requests: List[httpx.Request] = []
        self._next_id = 1

    # ── helpers ──

    def add_highlight(self, highlight_id: str, entry_id: str, start: int, length: int,
                      user_id: str = ALICE, minutes: int = 0, **extra) -> None:
        self.highlights[highlight_id] = {
            "id": highlight_id,
            "entry_id": entry_id,
            "user_id": user_id,
            "start_pos": start,
            "length": length,
            "selected_text": extra.pop("selected_text", ""),
            "color": extra.pop("color", "yellow"),
            "visibility": extra.pop("visibility", "private"),
            "note": extra.pop("note", None),
            "created_at": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
            **extra,
        }

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    @staticmethod
    def _error(status: int, message: str, code: Optional[str] = None) -> httpx.Response:
        body = {"message": message}
        if code:
            body["code"] = code
        return httpx.Response(status, json=body)

    # ── transport entry point ──

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.connect_error:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.status_override:
            return self._error(self.status_override[path], "upstream exploded")

        if request.headers.get("apikey") != "test-anon-key":
            return self._error(401, "No API key found in request")
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        user = TOKENS.get(token)
        if user is None:
            return httpx.Response(401, json={"msg": "invalid JWT"})

        params = request.url.params
        payload = json.loads(request.content) if request.content else None

        if path == "/auth/v1/user":
            return httpx.Response(200, json={"id": user, "email": f"{user}@example.com"})
        if path.startswith("/rest/v1/rpc/"):
            return self._rpc(path.rsplit("/", 1)[-1], payload or {}, user)
        if path == "/rest/v1/devotion_entries":
            return httpx.Response(200, json=self._by_id(self.devotion_entries, params))
        if path == "/rest/v1/study_entries":
            return self._study_entries(params)
        if path == "/rest/v1/study_highlights":
            return self._study_highlights(request.method, params, payload)
        return self._error(404, f"relation {path} does not exist", code="42P01")

    def _by_id(self, table: Dict[str, Dict[str, Any]], params) -> List[Dict[str, Any]]:
        wanted = params.get("id", "").removeprefix("eq.")
        return [table[wanted]] if wanted in table else []

    def _study_entries(self, params) -> httpx.Response:
        if "series_id" in params:
            series = params["series_id"].removeprefix("eq.")
            rows = [{"id": e["id"]} for e in self.study_entries.values() if e["series_id"] == series]
            return httpx.Response(200, json=rows)
        return httpx.Response(200, json=self._by_id(self.study_entries, params))

    def _study_highlights(self, method: str, params, payload) -> httpx.Response:
        user = params.get("user_id", "").removeprefix("eq.")
        if method == "GET":
            wanted = params["entry_id"]
            if wanted.startswith("eq."):
                entry_ids = [wanted.removeprefix("eq.")]
            else:
                entry_ids = wanted.removeprefix("in.(").removesuffix(")").split(",")
            rows = [
                {"entry_id": r["entry_id"], "loc": r["loc"]}
                for r in self.study_highlights
                if r["user_id"] == user and r["entry_id"] in entry_ids
            ]
            return httpx.Response(200, json=rows)
        if method == "POST":
            self.study_highlights.append(payload)
            return httpx.Response(201)
        if method == "DELETE":
            entry_id = params["entry_id"].removeprefix("eq.")
            loc = json.loads(unquote(params["loc"]).removeprefix("cs."))
            self.study_highlights = [
                r for r in self.study_highlights
                if not (r["user_id"] == user and r["entry_id"] == entry_id
                        and r["loc"].get("sentence_index") == loc["sentence_index"])
            ]
            return httpx.Response(204)
        return self._error(405, "method not allowed")

    def _rpc(self, function: str, params: Dict[str, Any], user: str) -> httpx.Response:
        if function == "dev_list_highlights_for_entry":
            rows = [h for h in self.highlights.values() if h["entry_id"] == params["p_entry_id"]]
            return httpx.Response(200, json=rows)

        if function == "dev_create_highlight":
            if params["p_length"] <= 0:
                return self._error(400, "length must be positive", code="23514")
            new_id = f"hl-{self._next_id}"
            self._next_id += 1
            self.add_highlight(
                new_id,
                params["p_entry_id"],
                params["p_start_pos"],
                params["p_length"],
                user_id=user,
                selected_text=params["p_selected_text"],
                color=params["p_color"],
                visibility=params["p_visibility"],
                note=params.get("p_note"),
                body_hash=params.get("p_body_hash"),
            )
            return httpx.Response(200, json=new_id)

        if function == "dev_delete_highlight":
            row = self.highlights.get(params["p_highlight_id"])
            if row is None:
                return httpx.Response(204)
            if row["user_id"] != user:
                return self._error(400, "Not authorized to delete this highlight", code="P0001")
            del self.highlights[params["p_highlight_id"]]
            return httpx.Response(204)

        if function == "dev_list_my_highlights":
            rows = [
                {
                    "id": h["id"],
                    "devotion_id": h["entry_id"],
                    "devotion_title": self.devotion_entries.get(h["entry_id"], {}).get("day_title"),
                    "selected_text": h["selected_text"],
                    "note": h["note"],
                    "start_pos": h["start_pos"],
                    "created_at": h["created_at"],
                }
                for h in self.highlights.values()
                if h["user_id"] == user
            ]
            return httpx.Response(200, json=rows)

        if function == "sg_list_my_highlights":
            rows = []
            for i, r in enumerate(self.study_highlights):
                if r["user_id"] != user:
                    continue
                entry = self.study_entries.get(r["entry_id"], {})
                rows.append({
                    "id": f"sh-{i}",
                    "entry_id": r["entry_id"],
                    "series_id": entry.get("series_id"),
                    "entry_title": entry.get("title"),
                    "series_title": "Gospel of John",
                    "text": r["text"],
                    "note": r.get("note"),
                    "created_at": (BASE_TIME + timedelta(minutes=i)).isoformat(),
                })
            return httpx.Response(200, json=rows)

        return self._error(404, f"Could not find the function public.{function}", code="PGRST202")


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest_asyncio.fixture
async def app_state(supabase):
    """AppState whose HTTP client talks to the FakeSupabase."""
    from fireside.state import AppState

    state = AppState(transport=httpx.MockTransport(supabase))
    await state.startup()
    yield state
    await state.shutdown()


@pytest_asyncio.fixture
async def supabase_backend(app_state):
    """SupabaseBackend signed in as user-alice."""
    backend = app_state._backend("token-alice")
    await backend.get_current_user()
    return backend


@pytest_asyncio.fixture
async def test_client(app_state):
    """
    Provides an async HTTP test client for endpoint testing.

    How:     ASGITransport routes requests straight into the app. The lifespan
             does not run under ASGITransport, so app_state is started by its
             own fixture instead.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from fireside.main import create_app

    app = create_app(app_state)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
