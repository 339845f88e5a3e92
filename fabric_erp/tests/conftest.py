import os
import sys
from contextlib import contextmanager

import pytest


# Allow running pytest from either the repo root or from within `fabric_erp/`.
# Tests import `fabric_erp.*`, which requires the repo root on sys.path.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

class FakeCursor:
    """Returns canned rows for the first `(needle, rows)` pair whose needle occurs in the SQL."""

    def __init__(self, responses):
        self._responses = list(responses)
        self._rows = []
        self.executed: list[tuple[str, tuple]] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self.executed.append((sql, tuple(params or ())))
        self._rows = []
        for needle, rows in self._responses:
            if needle in sql:
                self._rows = list(rows)
                break

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)

    def statements(self, needle: str) -> list[tuple]:
        return [params for sql, params in self.executed if needle in sql]


class FakeConn:
    def __init__(self, cursor: FakeCursor):
        self._cursor = cursor

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def cursor(self):
        return self._cursor

    @contextmanager
    def transaction(self):
        yield


@pytest.fixture
def fake_db(monkeypatch):
    def _patch(module, responses) -> FakeCursor:
        cur = FakeCursor(responses)
        conn = FakeConn(cur)
        monkeypatch.setattr(module, "get_conn", lambda: conn)
        monkeypatch.setattr(module, "set_warehouse_context", lambda *_args, **_kwargs: None)
        return cur

    return _patch
