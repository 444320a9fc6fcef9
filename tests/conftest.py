"""
Pytest Configuration and Fixtures
"""

import os

# Settings are read at import time; these must exist before app modules load
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
os.environ.setdefault("SYNC_WORKER_ENABLED", "false")
os.environ.setdefault("SYNC_REQUEST_DELAY_MS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable, Dict, List, Optional, Tuple  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

FILTER_METHODS = (
    "eq", "neq", "gt", "gte", "lt", "lte", "in_", "is_", "ilike", "like",
    "order", "limit", "range", "single",
)


class FakeQuery:
    """
    Chainable stand-in for a postgrest query builder.

    Records the operation, payload and filters; execute() answers from the
    owning FakeSupabase's handlers.
    """

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.options: Dict[str, Any] = {}
        self.filters: List[Tuple[str, tuple]] = []
        self.single = False

    def select(self, *args, **kwargs):
        self.op = "select"
        self.options["columns"] = args[0] if args else "*"
        return self

    def insert(self, payload, **kwargs):
        self.op, self.payload, self.options = "insert", payload, kwargs
        return self

    def upsert(self, payload, **kwargs):
        self.op, self.payload, self.options = "upsert", payload, kwargs
        return self

    def update(self, payload, **kwargs):
        self.op, self.payload = "update", payload
        return self

    def delete(self, **kwargs):
        self.op = "delete"
        return self

    def maybe_single(self):
        self.single = True
        return self

    def __getattr__(self, name):
        if name in FILTER_METHODS:
            def record(*args, **kwargs):
                self.filters.append((name, args))
                return self
            return record
        raise AttributeError(name)

    def filter_value(self, column: str, method: str = "eq") -> Any:
        for name, args in self.filters:
            if name == method and args and args[0] == column:
                return args[1] if len(args) > 1 else None
        return None

    def execute(self):
        self.db.queries.append(self)
        handler = self.db.handlers.get((self.table, self.op))

        if handler is None:
            data = self._default_data()
        elif callable(handler):
            data = handler(self)
        else:
            data = handler

        if isinstance(data, Exception):
            raise data

        if self.single:
            if isinstance(data, list):
                data = data[0] if data else None
            if data is None:
                return None

        return Mock(data=data)

    def _default_data(self):
        if self.op in ("insert", "upsert"):
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            return [{"id": f"{self.table}-{i + 1}", **row} for i, row in enumerate(rows)]
        if self.op == "update":
            row_id = self.filter_value("id")
            return [{"id": row_id, **self.payload} if row_id else self.payload]
        return []


class FakeSupabase:
    """Records every executed query; responses are set per (table, op)"""

    def __init__(self):
        self.handlers: Dict[Tuple[str, str], Any] = {}
        self.queries: List[FakeQuery] = []
        self.auth = Mock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def on(self, table: str, op: str, response: Any) -> "FakeSupabase":
        """response: data, an exception, or a callable taking the FakeQuery"""
        self.handlers[(table, op)] = response
        return self

    def calls(self, table: str, op: Optional[str] = None) -> List[FakeQuery]:
        return [q for q in self.queries if q.table == table and (op is None or q.op == op)]

    def payloads(self, table: str, op: str) -> List[Any]:
        return [q.payload for q in self.calls(table, op)]


@pytest.fixture
def fake_supabase():
    """Recording Supabase double"""
    return FakeSupabase()


@pytest.fixture
def mock_supabase():
    """Create mock Supabase client."""
    mock = Mock()
    mock.table.return_value = mock
    return mock


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    return Mock()


@pytest.fixture
def test_client(fake_supabase):
    """Create test client with the admin client dependency overridden"""
    from app.main import app
    from app.db import get_supabase_admin_client

    app.dependency_overrides[get_supabase_admin_client] = lambda: fake_supabase
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_workspace_id():
    """Mock workspace ID"""
    return "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def mock_user_id():
    """Mock user ID"""
    return "11111111-1111-1111-1111-111111111111"
