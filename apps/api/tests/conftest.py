import pytest
import pytest_asyncio
import os
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Callable, Optional
from httpx import AsyncClient, ASGITransport

# テスト環境設定
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["SUPABASE_SERVICE_ROLE"] = "test-service-role"

from xanime_api.main import app
from xanime_api.core.supabase import get_auth_client, get_supabase


class FakeResponse:
    def __init__(self, data: Optional[list] = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        self.count = count


class FakeQuery:
    """Records one PostgREST request builder chain."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op: Optional[str] = None
        self.payload: Any = None
        self.columns: Optional[str] = None
        self.count: Optional[str] = None
        self.filters: list[tuple[str, Any]] = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_n: Optional[int] = None
        self.on_conflict: Optional[str] = None

    def select(self, *columns, count=None):
        self.op = self.op or "select"
        self.columns = ",".join(columns)
        self.count = count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def execute(self):
        return self.db.handle(self)


class FakeStorageBucket:
    def __init__(self, db: "FakeSupabase", bucket: str):
        self.db = db
        self.bucket = bucket

    def remove(self, paths):
        if self.db.storage_error is not None:
            raise self.db.storage_error
        self.db.removed.append((self.bucket, list(paths)))
        return [{"name": path} for path in paths]


class FakeSupabase:
    """
    In-memory stand-in for the Supabase client.

    Tables are lists of row dicts. ``script(table, op, *results)`` queues
    results for the next matching calls: an exception is raised, a callable
    is called with the query, a list is returned as rows.
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.scripts: dict[tuple[str, str], list] = {}
        self.calls: list[FakeQuery] = []
        self.users: dict[str, SimpleNamespace] = {}
        self.removed: list[tuple[str, list]] = []
        self.storage_error: Optional[Exception] = None
        self._next_id = 0
        self.auth = SimpleNamespace(get_user=self._get_user)
        self.storage = SimpleNamespace(from_=lambda bucket: FakeStorageBucket(self, bucket))

    # auth
    def add_user(self, token: str, user_id: str, email: Optional[str] = None):
        self.users[token] = SimpleNamespace(id=user_id, email=email)

    def _get_user(self, token: str):
        user = self.users.get(token)
        return SimpleNamespace(user=user) if user else None

    # tables
    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, *rows: dict):
        self.tables.setdefault(table, []).extend(dict(row) for row in rows)

    def script(self, table: str, op: str, *results):
        self.scripts.setdefault((table, op), []).extend(results)

    def calls_to(self, table: str, op: Optional[str] = None) -> list[FakeQuery]:
        return [q for q in self.calls if q.table == table and (op is None or q.op == op)]

    def _matches(self, query: FakeQuery, row: dict) -> bool:
        return all(row.get(column) == value for column, value in query.filters)

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id-{self._next_id}"

    def handle(self, query: FakeQuery) -> FakeResponse:
        self.calls.append(query)

        queue = self.scripts.get((query.table, query.op))
        if queue:
            result = queue.pop(0)
            if isinstance(result, Exception):
                raise result
            if callable(result):
                result = result(query)
            if isinstance(result, FakeResponse):
                return result
            return FakeResponse(result)

        rows = self.tables.setdefault(query.table, [])

        if query.op in ("insert", "upsert"):
            row = dict(query.payload)
            if query.op == "upsert" and query.on_conflict:
                rows[:] = [r for r in rows if r.get(query.on_conflict) != row.get(query.on_conflict)]
            row.setdefault("id", self._new_id())
            rows.append(row)
            return FakeResponse([dict(row)])

        matched = [row for row in rows if self._matches(query, row)]

        if query.op == "update":
            for row in matched:
                row.update(query.payload)
            return FakeResponse([dict(row) for row in matched])

        if query.op == "delete":
            rows[:] = [row for row in rows if not self._matches(query, row)]
            return FakeResponse([dict(row) for row in matched])

        count = len(matched) if query.count else None
        if query.limit_n is not None:
            matched = matched[: query.limit_n]
        return FakeResponse([dict(row) for row in matched], count=count)


@pytest.fixture
def fake_db() -> FakeSupabase:
    db = FakeSupabase()
    db.add_user("valid-token", "user-1", "creator@example.com")
    db.add_user("other-token", "user-2", "other@example.com")
    return db


@pytest_asyncio.fixture(scope="function")
async def client(fake_db: FakeSupabase) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client backed by the fake Supabase client."""
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_auth_client] = lambda: fake_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    """Default headers with a valid bearer token."""
    return {"Authorization": "Bearer valid-token"}


@pytest.fixture
def other_headers():
    return {"Authorization": "Bearer other-token"}


@pytest.fixture
def hierarchy(fake_db: FakeSupabase) -> FakeSupabase:
    """Series → season → episode owned by user-1, with a video file and a feed row."""
    fake_db.seed("series", {"id": "series-1", "owner_id": "user-1", "slug": "sakura"})
    fake_db.seed("seasons", {"id": "season-1", "series_id": "series-1", "slug": "sakura-main"})
    fake_db.seed(
        "episodes",
        {
            "id": "episode-1",
            "season_id": "season-1",
            "title_raw": "第1話「はじまり」",
            "title_clean": "はじまり",
            "description": "最初の話",
            "tags": ["ほのぼの", " ", "日常"],
            "thumbnail_url": "http://supabase.test/storage/v1/object/public/video/thumbs/ep1.jpg",
            "duration_sec": 600,
            "created_at": "2024-10-01T00:00:00+00:00",
        },
    )
    fake_db.seed(
        "video_files",
        {
            "id": "vf-1",
            "episode_id": "episode-1",
            "file_path": "videos/ep1.mp4",
            "thumbnail_url": "http://supabase.test/storage/v1/object/public/video/thumbs/ep1%20alt.jpg",
        },
    )
    fake_db.seed(
        "videos",
        {
            "id": "video-1",
            "owner_id": "user-1",
            "file_path": "videos/v1.mp4",
            "thumbnail_url": "http://supabase.test/storage/v1/object/public/video/thumbs/v1.jpg",
            "view_count": 4,
            "like_count": 0,
        },
    )
    return fake_db


@pytest.fixture
def db_error() -> Callable[..., Exception]:
    """Build the error the Supabase client raises for a failed PostgREST call."""
    from supabase import PostgrestAPIError

    def make(code: str, message: str = "", details: Optional[str] = None, hint: Optional[str] = None):
        return PostgrestAPIError({"code": code, "message": message, "details": details, "hint": hint})

    return make
