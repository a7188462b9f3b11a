"""
Topic repositories.

Two backends share one interface:

    SQLiteTopicRepository  local SQLite file (or in-memory), seeded with the
                           built-in debates on first use
    RemoteTopicRepository  hosted Postgres table behind a PostgREST-style
                           REST API (e.g. Supabase)

Repositories are explicit objects with an open()/close() lifecycle; use them
as context managers:

    with create_repository(load_settings()) as repo:
        for topic in repo.list():
            print(topic.title)
"""
from __future__ import annotations

import http.client
import json
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
from urllib.parse import quote, urlparse

from pydantic import ValidationError

from .config import Settings
from .seeds import SEED_TOPICS
from .topics import Topic, TopicDraft

logger = logging.getLogger('debatelib')


class StorageError(Exception):
    """Raised when a repository cannot read or write topics."""
    pass


class TopicRepository(ABC):

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    @abstractmethod
    def list(self) -> list[Topic]:
        """All stored topics, oldest first."""
        pass

    def get(self, topic_id: int) -> Optional[Topic]:
        """One stored topic, or None if there is no topic with that id."""
        for topic in self.list():
            if topic.id == topic_id:
                return topic
        return None

    @abstractmethod
    def insert(self, draft: TopicDraft) -> Optional[Topic]:
        """Store a topic. Returns it with its new id, or None if the backend returned nothing."""
        pass

    def __enter__(self) -> TopicRepository:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


_LIST_COLUMNS = ("script", "pre_conditions", "post_conditions", "invariants")


def _row_to_topic(row: dict[str, Any]) -> Topic:
    data = dict(row)
    for column in _LIST_COLUMNS:
        value = data.get(column)
        if isinstance(value, str):
            data[column] = json.loads(value)
        elif value is None:
            data.pop(column, None)
    return Topic.model_validate(data)


def _draft_to_row(draft: TopicDraft) -> dict[str, Any]:
    wire = draft.model_dump(mode="json", exclude={"script": {"__all__": {"is_typing"}}})
    return {
        "title": wire["title"],
        "description": wire["description"],
        "code": wire["code"],
        "script": [{"id": m["id"], "speaker": m["speaker"], "text": m["text"]} for m in wire["script"]],
        "pre_conditions": wire["pre_conditions"],
        "post_conditions": wire["post_conditions"],
        "invariants": wire["invariants"],
    }


class SQLiteTopicRepository(TopicRepository):
    """Topics in a SQLite database; list-valued fields are stored as JSON text."""

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS debates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            code TEXT NOT NULL,
            script TEXT NOT NULL,
            pre_conditions TEXT NOT NULL DEFAULT '[]',
            post_conditions TEXT NOT NULL DEFAULT '[]',
            invariants TEXT NOT NULL DEFAULT '[]'
        )
    """

    def __init__(self, path: str = ":memory:", seed: bool = True):
        self.path = path if path == ":memory:" else os.path.expanduser(path)
        self.seed = seed
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                if self.path != ":memory:":
                    os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
                conn = sqlite3.connect(self.path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                with conn:
                    conn.execute(self.SCHEMA)
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to open topic database {self.path}: {e}") from e
            self._conn = conn

        if self.seed and not self.list():
            for draft in SEED_TOPICS:
                self.insert(draft)
            logger.info(f"Seeded {len(SEED_TOPICS)} topics into {self.path}")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Topic repository is not open")
        return self._conn

    def list(self) -> list[Topic]:
        with self._lock:
            try:
                rows = self._connection().execute("SELECT * FROM debates ORDER BY id ASC").fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to list topics: {e}") from e
        return [_row_to_topic(dict(row)) for row in rows]

    def get(self, topic_id: int) -> Optional[Topic]:
        with self._lock:
            try:
                row = self._connection().execute(
                    "SELECT * FROM debates WHERE id = ?", (topic_id,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read topic {topic_id}: {e}") from e
        return _row_to_topic(dict(row)) if row is not None else None

    def insert(self, draft: TopicDraft) -> Topic:
        row = _draft_to_row(draft)
        values = [row[k] if k not in _LIST_COLUMNS else json.dumps(row[k]) for k in row]
        with self._lock:
            conn = self._connection()
            try:
                with conn:
                    cursor = conn.execute(
                        f"INSERT INTO debates ({', '.join(row)}) VALUES ({', '.join('?' * len(row))})",
                        values,
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to insert topic: {e}") from e
        return Topic(id=cursor.lastrowid, **draft.model_dump())


class RemoteTopicRepository(TopicRepository):
    """
    Topics in a hosted Postgres table exposed through a PostgREST-style API.

    List-valued columns are expected to be json/jsonb; text columns holding
    JSON are decoded as well.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = "debates",
        timeout: float = 30.0,
        connection_factory: Optional[Callable[..., http.client.HTTPConnection]] = None
    ):
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid storage URL: {url!r}")
        if not api_key:
            raise ValueError("A storage API key is required")
        self.url = url
        self.parsed = parsed
        self.api_key = api_key
        self.table = table
        self.timeout = timeout
        self.connection_factory = connection_factory or self._default_connection

    def _default_connection(self) -> http.client.HTTPConnection:
        if self.parsed.scheme == "https":
            return http.client.HTTPSConnection(self.parsed.hostname, self.parsed.port, timeout=self.timeout)
        return http.client.HTTPConnection(self.parsed.hostname, self.parsed.port, timeout=self.timeout)

    def _path(self, query: str = "") -> str:
        base = self.parsed.path.rstrip("/")
        path = f"{base}/rest/v1/{quote(self.table)}"
        return f"{path}?{query}" if query else path

    def _request(self, method: str, path: str, body: Any = None, headers: Optional[dict] = None) -> Any:
        request_headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            **(headers or {}),
        }
        payload = None
        if body is not None:
            payload = json.dumps(body)
            request_headers["Content-Type"] = "application/json"

        conn = self.connection_factory()
        try:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"{method} {path}")
            conn.request(method, path, payload, request_headers)
            response = conn.getresponse()
            response_data = response.read().decode()
        except (OSError, http.client.HTTPException) as e:
            raise StorageError(f"Storage request failed: {e}") from e
        finally:
            conn.close()

        if not 200 <= response.status < 300:
            raise StorageError(f"Storage error {response.status}: {response_data.strip()[:1000]}")
        if not response_data.strip():
            return None
        try:
            return json.loads(response_data)
        except json.JSONDecodeError as e:
            raise StorageError(f"Storage returned invalid JSON: {e}") from e

    def list(self) -> list[Topic]:
        return self._topics(self._request("GET", self._path("select=*&order=id.asc")))

    def get(self, topic_id: int) -> Optional[Topic]:
        topics = self._topics(self._request("GET", self._path(f"select=*&id=eq.{int(topic_id)}")))
        return topics[0] if topics else None

    def _topics(self, rows: Any) -> list[Topic]:
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise StorageError(f"Storage returned {type(rows).__name__} where a list of topics was expected")
        try:
            return [_row_to_topic(row) for row in rows]
        except (ValidationError, json.JSONDecodeError, TypeError, ValueError) as e:
            raise StorageError(f"Storage returned an invalid topic: {e}") from e

    def insert(self, draft: TopicDraft) -> Optional[Topic]:
        rows = self._request(
            "POST", self._path(), _draft_to_row(draft), {"Prefer": "return=representation"}
        )
        if not rows:
            return None
        row = rows[0] if isinstance(rows, list) else rows
        try:
            return _row_to_topic(row)
        except (ValidationError, json.JSONDecodeError, TypeError, ValueError) as e:
            raise StorageError(f"Storage returned an invalid topic: {e}") from e


def create_repository(settings: Settings) -> TopicRepository:
    """Build (but do not open) the repository the settings select."""
    if settings.storage == "remote":
        return RemoteTopicRepository(
            settings.remote_url, settings.remote_key, settings.remote_table, settings.call_timeout
        )
    return SQLiteTopicRepository(settings.sqlite_path)
