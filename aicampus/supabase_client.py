"""
AICAMPUS Backend - Hosted Database Client.
Thin async wrapper over the Supabase PostgREST interface.
Every database call goes through this module. Never hit /rest/v1 directly.
"""

import os

import httpx

from aicampus.errors import ConfigurationError, DatabaseError


def _quote(value) -> str:
    """Double-quote one in.() element so commas and parentheses stay literal."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _format_filter(value) -> str:
    """PostgREST filter syntax: lists become in.(...), everything else eq."""
    if isinstance(value, (list, tuple, set)):
        joined = ",".join(_quote(v) for v in value)
        return f"in.({joined})"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _parse_count(content_range: str) -> int:
    """Content-Range looks like '0-24/120' or '*/0'."""
    try:
        return int(content_range.rsplit("/", 1)[1])
    except (IndexError, ValueError):
        return 0


class SupabaseClient:
    """Row-level CRUD against one Supabase project."""

    def __init__(self, url: str | None = None, key: str | None = None, timeout: float | None = None):
        self.url = (url if url is not None else os.getenv("SUPABASE_URL", "")).rstrip("/")
        self.key = key if key is not None else os.getenv("SUPABASE_KEY", "")
        if timeout is None:
            timeout = float(os.getenv("SUPABASE_TIMEOUT_SEC", "15"))
        self.client = httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.url and self.key)

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _endpoint(self, path: str) -> str:
        if not self.configured:
            raise ConfigurationError("Supabase URL or key not configured")
        return f"{self.url}/rest/v1/{path}"

    async def _request(self, method: str, path: str, params: dict | None = None,
                       json: object = None, headers: dict | None = None) -> httpx.Response:
        url = self._endpoint(path)
        try:
            resp = await self.client.request(
                method, url, params=params, json=json, headers=self._headers(headers),
            )
        except httpx.HTTPError as e:
            print(f"[DB] {method} {path} failed: {type(e).__name__}: {e}")
            raise DatabaseError(f"Database unreachable: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {"message": resp.text[:300]}
            message = body.get("message") or f"Database error ({resp.status_code})"
            print(f"[DB] {method} {path} -> {resp.status_code}: {message}")
            raise DatabaseError(message, code=body.get("code", ""), status=resp.status_code)

        return resp

    @staticmethod
    def _query(filters: dict | None, columns: str | None = None, order: str | None = None,
               limit: int | None = None) -> dict:
        params = {}
        if columns:
            params["select"] = columns
        for column, value in (filters or {}).items():
            params[column] = _format_filter(value)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return params

    # ── Reads ────────────────────────────────────────────────────────

    async def select(self, table: str, filters: dict | None = None, columns: str = "*",
                     order: str | None = None, limit: int | None = None) -> list[dict]:
        """
        Fetch rows. `order` uses PostgREST syntax, e.g. 'created_at.desc'.
        """
        resp = await self._request("GET", table, params=self._query(filters, columns, order, limit))
        return resp.json() or []

    async def select_one(self, table: str, filters: dict | None = None, columns: str = "*") -> dict | None:
        """First matching row, or None when nothing matches."""
        rows = await self.select(table, filters=filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, filters: dict | None = None) -> int:
        resp = await self._request(
            "HEAD",
            table,
            params=self._query(filters, columns="*"),
            headers={"Prefer": "count=exact"},
        )
        return _parse_count(resp.headers.get("content-range", ""))

    # ── Writes ───────────────────────────────────────────────────────

    async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        """Insert one or many rows and return them as stored."""
        payload = rows if isinstance(rows, list) else [rows]
        resp = await self._request(
            "POST", table, json=payload, headers={"Prefer": "return=representation"},
        )
        return resp.json() or []

    async def upsert(self, table: str, rows: dict | list[dict], on_conflict: str) -> list[dict]:
        """
        Insert rows, skipping any that collide on the `on_conflict` columns.
        Only rows actually inserted come back. Needs a unique constraint on
        those columns.
        """
        payload = rows if isinstance(rows, list) else [rows]
        resp = await self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=payload,
            headers={"Prefer": "resolution=ignore-duplicates,return=representation"},
        )
        return resp.json() or []

    async def update(self, table: str, values: dict, filters: dict) -> list[dict]:
        if not filters:
            raise ValueError("update requires at least one filter")
        resp = await self._request(
            "PATCH",
            table,
            params=self._query(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return resp.json() or []

    async def delete(self, table: str, filters: dict) -> list[dict]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        resp = await self._request(
            "DELETE",
            table,
            params=self._query(filters),
            headers={"Prefer": "return=representation"},
        )
        return resp.json() or []

    # ── Lifecycle ────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        if not self.configured:
            return False
        try:
            resp = await self.client.get(f"{self.url}/rest/v1/", headers=self._headers())
            return resp.status_code < 500
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self.client.aclose()


def create_supabase_client() -> SupabaseClient:
    """Factory: build the process-wide client from env vars."""
    return SupabaseClient()
