from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from aicampus import events_service
from aicampus.errors import DatabaseError


class FakeDatabase:
    """In-memory stand-in for SupabaseClient with PostgREST filter semantics."""

    configured = True

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None) -> None:
        self.tables: dict[str, list[dict]] = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self.fail_tables: set[str] = set()
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 11, 1, 8, 0, tzinfo=timezone.utc)
        self.closed = False

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if table in self.fail_tables:
            raise DatabaseError(f"{table} unavailable", code="XX000", status=500)

    def _next_timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    @staticmethod
    def _matches(row: dict, filters: Optional[dict]) -> bool:
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                if row.get(column) not in value:
                    return False
            elif row.get(column) != value:
                return False
        return True

    @staticmethod
    def _project(row: dict, columns: str) -> dict:
        if columns == "*":
            return dict(row)
        return {c: row.get(c) for c in columns.split(",")}

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    async def select(self, table: str, filters: Optional[dict] = None, columns: str = "*",
                     order: Optional[str] = None, limit: Optional[int] = None) -> list[dict]:
        self._check("select", table)
        found = [r for r in self.rows(table) if self._matches(r, filters)]
        if order:
            column, _, direction = order.partition(".")
            found.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")
        if limit is not None:
            found = found[:limit]
        return [self._project(r, columns) for r in found]

    async def select_one(self, table: str, filters: Optional[dict] = None, columns: str = "*") -> Optional[dict]:
        rows = await self.select(table, filters=filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, filters: Optional[dict] = None) -> int:
        self._check("count", table)
        return len([r for r in self.rows(table) if self._matches(r, filters)])

    async def insert(self, table: str, rows: Any) -> list[dict]:
        self._check("insert", table)
        payload = rows if isinstance(rows, list) else [rows]
        stored = []
        for row in payload:
            record = dict(row)
            record.setdefault("id", f"{table}-{next(self._ids)}")
            record.setdefault("created_at", self._next_timestamp())
            self.rows(table).append(record)
            stored.append(dict(record))
        return stored

    async def upsert(self, table: str, rows: Any, on_conflict: str) -> list[dict]:
        """ON CONFLICT DO NOTHING: returns only the rows actually inserted."""
        self._check("upsert", table)
        keys = on_conflict.split(",")
        payload = rows if isinstance(rows, list) else [rows]
        stored = []
        for row in payload:
            conflict = {k: row.get(k) for k in keys}
            if any(self._matches(existing, conflict) for existing in self.rows(table)):
                continue
            record = dict(row)
            record.setdefault("id", f"{table}-{next(self._ids)}")
            record.setdefault("created_at", self._next_timestamp())
            self.rows(table).append(record)
            stored.append(dict(record))
        return stored

    async def update(self, table: str, values: dict, filters: dict) -> list[dict]:
        self._check("update", table)
        updated = []
        for row in self.rows(table):
            if self._matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, filters: dict) -> list[dict]:
        self._check("delete", table)
        kept, removed = [], []
        for row in self.rows(table):
            (removed if self._matches(row, filters) else kept).append(row)
        self.tables[table] = kept
        return removed

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("insert", "upsert", "update", "delete")]


class FakeProvider:
    """Canned LLM. Records every call so tests can assert on prompts."""

    def __init__(self, name: str = "groq", reply: Optional[str] = "Halo juga!",
                 api_key: str = "test-key", error: Optional[Exception] = None) -> None:
        self.name = name
        self.api_key = api_key
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, messages, temperature=0.7, max_tokens=1000, top_p=None):
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": top_p,
        })
        if self.error is not None:
            raise self.error
        return self.reply

    async def health_check(self) -> bool:
        return self.configured

    async def close(self) -> None:
        pass


INTEREST_GROUPS = [
    {"id": "g-tech", "name": "Tech Enthusiasts", "interest_category": "teknologi",
     "description": "Ngobrol soal coding", "avatar_url": None},
    {"id": "g-biz", "name": "Bisnis Muda", "interest_category": "bisnis",
     "description": "", "avatar_url": None},
    {"id": "g-arts", "name": "Seni Kreatif", "interest_category": "seni",
     "description": None, "avatar_url": None},
    {"id": "g-academic", "name": "Riset & Akademik", "interest_category": "akademik",
     "description": "", "avatar_url": None},
    {"id": "g-sports", "name": "Olahraga UNS", "interest_category": "olahraga",
     "description": "", "avatar_url": None},
]

PROFILES = [
    {"id": "u-alice", "username": "alice", "avatar_url": "https://img/alice.png", "email": "alice@uns.ac.id"},
    {"id": "u-bob", "username": None, "avatar_url": None, "email": "bob@student.uns.ac.id"},
    {"id": "u-carol", "username": "carol", "avatar_url": None, "email": "carol@uns.ac.id"},
]

USER_DATA = [
    {"user_id": "u-alice", "nama": "Alice", "universitas": "UNS", "jurusan": "Informatika",
     "minat": "coding dan futsal"},
    {"user_id": "u-bob", "nama": "Bob", "universitas": "UNS", "jurusan": "Manajemen",
     "minat": "startup"},
    {"user_id": "u-carol", "nama": "Carol", "universitas": "UNS", "jurusan": "Seni Rupa",
     "minat": "   "},
]


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase({
        "interest_groups": INTEREST_GROUPS,
        "profiles": PROFILES,
        "user_data": USER_DATA,
        "group_members": [],
        "group_messages": [],
        "tasks": [],
    })


@pytest.fixture
def groq() -> FakeProvider:
    return FakeProvider(name="groq")


@pytest.fixture
def gemini() -> FakeProvider:
    return FakeProvider(name="gemini", reply="")


@pytest.fixture
def fresh_events():
    """Drop the catalog cache around a test so EVENTS_DATA_PATH changes apply."""
    events_service._events_cache = None
    yield
    events_service._events_cache = None


@pytest.fixture
def memberships(fake_db) -> FakeDatabase:
    """Alice in tech and sports, Bob in tech. Carol belongs nowhere."""
    fake_db.rows("group_members").extend([
        {"group_id": "g-tech", "user_id": "u-alice"},
        {"group_id": "g-sports", "user_id": "u-alice"},
        {"group_id": "g-tech", "user_id": "u-bob"},
    ])
    return fake_db
