from __future__ import annotations

import sqlite3
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from status_ninja.results import Reason, Result, StoreError


SCHEMA_VERSION = 1


def _utc_ts() -> float:
    return float(time.time())


def _uuid() -> str:
    return str(uuid.uuid4())


def _connect(path: str) -> sqlite3.Connection:
    p = str(path or "").strip()
    if not p:
        raise ValueError("Missing db_path")
    Path(p).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(p, timeout=30, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000;")
    # Best-effort: WAL improves concurrency for a single-host service.
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.Error:
        pass
    return conn


def _ensure_schema_conn(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);")
    row = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()
    cur = int(row["v"]) if row and row["v"] else 0
    if cur >= SCHEMA_VERSION:
        return

    if cur == 0:
        _apply_v1(conn)
        conn.execute("INSERT OR REPLACE INTO schema_meta (k, v) VALUES ('version', ?)", (str(SCHEMA_VERSION),))
        return

    raise RuntimeError(f"Unsupported schema version upgrade path cur={cur} target={SCHEMA_VERSION}")


def _apply_v1(conn: sqlite3.Connection) -> None:
    # No foreign keys: referential cleanup is done by the callers.
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS apis (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          url TEXT NOT NULL,
          created_at_ts REAL NOT NULL,
          owner_id INTEGER NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chats (
          id INTEGER PRIMARY KEY,
          description TEXT,
          created_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS api_chats (
          id TEXT PRIMARY KEY,
          api_id TEXT NOT NULL,
          chat_id INTEGER NOT NULL,
          created_at_ts REAL NOT NULL,
          UNIQUE(api_id, chat_id)
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_apis_name ON apis(name);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_apis_owner ON apis(owner_id);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_api_chats_chat ON api_chats(chat_id);")


@dataclass(frozen=True)
class Endpoint:
    id: str
    name: str
    url: str
    created_at_ts: float
    owner_id: int


@dataclass(frozen=True)
class Chat:
    id: int
    description: str | None
    created_at_ts: float


def _row_to_endpoint(row: Any) -> Endpoint:
    return Endpoint(
        id=str(row["id"]),
        name=str(row["name"]),
        url=str(row["url"]),
        created_at_ts=float(row["created_at_ts"]),
        owner_id=int(row["owner_id"]),
    )


def _row_to_chat(row: Any) -> Chat:
    desc = row["description"]
    return Chat(
        id=int(row["id"]),
        description=str(desc) if desc is not None else None,
        created_at_ts=float(row["created_at_ts"]),
    )


class RegistryStore:
    """sqlite-backed CRUD store for endpoints, chats and subscriptions.

    Each call is atomic on its own; multi-step workflows (e.g. delete the
    subscriptions of an endpoint, then the endpoint) are not wrapped in a
    transaction. Any sqlite failure surfaces as ``StoreError``.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _open(self) -> sqlite3.Connection:
        try:
            conn = _connect(self.db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open registry db: {exc}") from exc
        try:
            _ensure_schema_conn(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise StoreError(f"cannot prepare registry schema: {exc}") from exc
        return conn

    def _query(self, sql: str, params: tuple = ()) -> list[Any]:
        conn = self._open()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"query failed: {exc}") from exc
        finally:
            conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        conn = self._open()
        try:
            return int(conn.execute(sql, params).rowcount)
        except sqlite3.Error as exc:
            raise StoreError(f"statement failed: {exc}") from exc
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        self._open().close()

    # --- endpoints ---

    def list_endpoints(self, owner_id: int | None = None) -> list[Endpoint]:
        if owner_id is not None:
            rows = self._query(
                "SELECT * FROM apis WHERE owner_id=? ORDER BY created_at_ts ASC, rowid ASC",
                (int(owner_id),),
            )
        else:
            rows = self._query("SELECT * FROM apis ORDER BY created_at_ts ASC, rowid ASC")
        return [_row_to_endpoint(r) for r in rows]

    def find_endpoint_by_name(self, name: str) -> Endpoint | None:
        # Names are unique for new rows; legacy duplicates resolve to the oldest.
        rows = self._query(
            "SELECT * FROM apis WHERE name=? ORDER BY created_at_ts ASC, rowid ASC LIMIT 1",
            (str(name),),
        )
        return _row_to_endpoint(rows[0]) if rows else None

    def get_endpoint_by_name(self, name: str, owner_id: int | None = None) -> Result:
        endpoint = self.find_endpoint_by_name(name)
        if endpoint is None:
            return Result.failure(Reason.NOT_FOUND, f'Error: API endpoint "{name}" not found.')
        if owner_id is not None and endpoint.owner_id != int(owner_id):
            return Result.failure(
                Reason.PERMISSION_DENIED,
                f"Access denied: You don't have permission to access API \"{name}\".",
            )
        return Result.success(value=endpoint)

    def insert_endpoint(self, name: str, url: str, owner_id: int) -> str:
        eid = _uuid()
        self._execute(
            "INSERT INTO apis (id, name, url, created_at_ts, owner_id) VALUES (?, ?, ?, ?, ?)",
            (eid, str(name), str(url), _utc_ts(), int(owner_id)),
        )
        return eid

    def delete_endpoint(self, endpoint_id: str) -> bool:
        return self._execute("DELETE FROM apis WHERE id=?", (str(endpoint_id),)) > 0

    def delete_subscriptions_for_endpoint(self, endpoint_id: str) -> int:
        return self._execute("DELETE FROM api_chats WHERE api_id=?", (str(endpoint_id),))

    def list_subscriber_chat_ids(self, endpoint_id: str) -> list[int]:
        rows = self._query(
            """
            SELECT chats.id AS chat_id
            FROM api_chats
            LEFT JOIN chats ON api_chats.chat_id = chats.id
            WHERE api_chats.api_id=?
            ORDER BY api_chats.created_at_ts ASC, api_chats.rowid ASC
            """,
            (str(endpoint_id),),
        )
        return [int(r["chat_id"]) for r in rows if r["chat_id"] is not None]

    # --- chats ---

    def chat_exists(self, chat_id: int) -> bool:
        rows = self._query("SELECT 1 FROM chats WHERE id=?", (int(chat_id),))
        return bool(rows)

    def insert_chat(self, chat_id: int, description: str | None = None) -> None:
        self._execute(
            "INSERT INTO chats (id, description, created_at_ts) VALUES (?, ?, ?)",
            (int(chat_id), description or None, _utc_ts()),
        )

    def delete_chat(self, chat_id: int) -> bool:
        self._execute("DELETE FROM api_chats WHERE chat_id=?", (int(chat_id),))
        return self._execute("DELETE FROM chats WHERE id=?", (int(chat_id),)) > 0

    def list_chats(self) -> list[Chat]:
        rows = self._query("SELECT * FROM chats ORDER BY created_at_ts ASC, id ASC")
        return [_row_to_chat(r) for r in rows]

    # --- subscriptions ---

    def subscription_exists(self, chat_id: int, endpoint_id: str) -> bool:
        rows = self._query(
            "SELECT 1 FROM api_chats WHERE chat_id=? AND api_id=?",
            (int(chat_id), str(endpoint_id)),
        )
        return bool(rows)

    def insert_subscription(self, chat_id: int, endpoint_id: str) -> str:
        sid = _uuid()
        self._execute(
            "INSERT INTO api_chats (id, api_id, chat_id, created_at_ts) VALUES (?, ?, ?, ?)",
            (sid, str(endpoint_id), int(chat_id), _utc_ts()),
        )
        return sid

    def delete_subscription(self, chat_id: int, endpoint_id: str) -> bool:
        return (
            self._execute(
                "DELETE FROM api_chats WHERE chat_id=? AND api_id=?",
                (int(chat_id), str(endpoint_id)),
            )
            > 0
        )

    def export_config(self) -> dict[str, Any]:
        apis: list[dict[str, Any]] = []
        for endpoint in self.list_endpoints():
            chat_ids = self.list_subscriber_chat_ids(endpoint.id)
            apis.append({"name": endpoint.name, "url": endpoint.url, "chat_ids": [str(c) for c in chat_ids]})
        return {"apis": apis}
