from __future__ import annotations

import datetime as _dt
import json
import queue
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Any, Dict, Optional

from .records import Block, Comment, Database, Page, Record


def record_to_dict(record: Record) -> Dict[str, Any]:
    return {"kind": record.kind.value, **asdict(record)}


def _json_default(value: Any) -> Any:
    if isinstance(value, _dt.datetime):
        return value.isoformat()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=_json_default)


class StorageBase(ABC):
    """Abstract base class for all record stores.

    Stores must tolerate the same record arriving more than once: a node
    reachable through several parents is emitted once per parent."""

    @abstractmethod
    def write(self, record: Record) -> bool:
        """Persist a single record. Returns False if the store ignores its kind."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


class JsonlStorage(StorageBase):
    """Appends records as JSON Lines (.jsonl) using a background writer thread."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._queue: queue.Queue[Optional[Record]] = queue.Queue()
        self._thread = threading.Thread(target=self._writer, daemon=True)
        self._thread.start()

    def write(self, record: Record) -> bool:
        self._queue.put(record)
        return True

    def close(self) -> None:
        self._queue.put(None)
        self._thread.join(timeout=5)

    def _writer(self) -> None:
        with open(self._path, "a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is None:
                    break
                row = {"timestamp": time.time(), **record_to_dict(item)}
                f.write(_dumps(row) + "\n")
                f.flush()


SCHEMA = """
CREATE TABLE IF NOT EXISTS blocks (
    id TEXT not null primary key,
    parent_type TEXT not null,
    parent_id TEXT not null,
    created_time TEXT not null,
    created_by TEXT not null,
    last_edited_time TEXT not null,
    last_edited_by TEXT not null,
    archived INTEGER not null,
    in_trash INTEGER not null,
    -- index in parent
    child_index INTEGER not null,
    has_children INTEGER not null,
    -- child_page, child_database, paragraph, etc.
    block_type TEXT not null,
    type_data TEXT not null
);

CREATE TABLE IF NOT EXISTS pages (
    id TEXT not null primary key,
    parent_type TEXT not null,
    parent_id TEXT not null,
    created_time TEXT not null,
    created_by TEXT not null,
    last_edited_time TEXT not null,
    last_edited_by TEXT not null,
    archived INTEGER not null,
    in_trash INTEGER not null,
    properties TEXT not null,
    url TEXT not null,
    public_url TEXT,
    icon TEXT,
    cover TEXT
);

CREATE TABLE IF NOT EXISTS databases (
    id TEXT not null primary key,
    parent_type TEXT not null,
    parent_id TEXT not null,
    created_time TEXT not null,
    created_by TEXT not null,
    last_edited_time TEXT not null,
    last_edited_by TEXT not null,
    archived INTEGER not null,
    in_trash INTEGER not null,
    properties TEXT not null,
    url TEXT not null,
    public_url TEXT,
    icon TEXT,
    cover TEXT,
    is_inline INTEGER not null,
    -- arrays of rich text objects
    title TEXT not null,
    description TEXT not null
);

CREATE TABLE IF NOT EXISTS comments (
    id TEXT not null primary key,
    parent_type TEXT not null,
    parent_id TEXT not null,
    created_time TEXT not null,
    created_by TEXT not null,
    last_edited_time TEXT not null,
    discussion_id TEXT not null,
    rich_text TEXT not null
);
"""


def _optional_json(value: Any) -> Optional[str]:
    return None if value is None else _dumps(value)


class SqliteStorage(StorageBase):
    """Upserts blocks, pages, databases and comments into SQLite, keyed by id.

    Users are not stored. Must be used from the thread that created it."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._conn = sqlite3.connect(path)
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def write(self, record: Record) -> bool:
        if isinstance(record, Block):
            self._upsert_block(record)
        elif isinstance(record, Page):
            self._upsert_page(record)
        elif isinstance(record, Database):
            self._upsert_database(record)
        elif isinstance(record, Comment):
            self._upsert_comment(record)
        else:
            return False
        self._conn.commit()
        return True

    def close(self) -> None:
        self._conn.commit()
        self._conn.close()

    def count(self, table: str) -> int:
        if table not in ("blocks", "pages", "databases", "comments"):
            raise ValueError(f"unknown table: {table}")
        return self._conn.execute(f"select count(*) from {table}").fetchone()[0]

    def fetch_row(self, table: str, object_id: str) -> Optional[sqlite3.Row]:
        if table not in ("blocks", "pages", "databases", "comments"):
            raise ValueError(f"unknown table: {table}")
        self._conn.row_factory = sqlite3.Row
        try:
            return self._conn.execute(f"select * from {table} where id = ?", (object_id,)).fetchone()
        finally:
            self._conn.row_factory = None

    @staticmethod
    def _common(record: Any) -> tuple:
        return (
            record.id,
            record.parent_type,
            record.parent_id,
            record.created_time.isoformat(),
            record.created_by,
            record.last_edited_time.isoformat(),
            record.last_edited_by,
            int(record.archived),
            int(record.in_trash),
        )

    def _upsert_block(self, block: Block) -> None:
        # a block fetched by id has no position; keep the one a listing stored
        self._conn.execute(
            "insert into blocks values (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "on conflict(id) do update set "
            "parent_type = excluded.parent_type, parent_id = excluded.parent_id, "
            "created_time = excluded.created_time, created_by = excluded.created_by, "
            "last_edited_time = excluded.last_edited_time, last_edited_by = excluded.last_edited_by, "
            "archived = excluded.archived, in_trash = excluded.in_trash, "
            "child_index = coalesce(?, blocks.child_index), "
            "has_children = excluded.has_children, block_type = excluded.block_type, "
            "type_data = excluded.type_data",
            self._common(block)
            + (
                block.child_index if block.child_index is not None else 0,
                int(block.has_children),
                block.block_type,
                _dumps(block.type_data),
                block.child_index,
            ),
        )

    def _upsert_page(self, page: Page) -> None:
        self._conn.execute(
            "insert or replace into pages values (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._common(page)
            + (
                _dumps(page.properties),
                page.url,
                page.public_url,
                _optional_json(page.icon),
                _optional_json(page.cover),
            ),
        )

    def _upsert_database(self, database: Database) -> None:
        self._conn.execute(
            "insert or replace into databases values "
            "(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._common(database)
            + (
                _dumps(database.properties),
                database.url,
                database.public_url,
                _optional_json(database.icon),
                _optional_json(database.cover),
                int(database.is_inline),
                _dumps(database.title),
                _dumps(database.description),
            ),
        )

    def _upsert_comment(self, comment: Comment) -> None:
        self._conn.execute(
            "insert or replace into comments values (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                comment.id,
                comment.parent_type,
                comment.parent_id,
                comment.created_time.isoformat(),
                comment.created_by,
                comment.last_edited_time.isoformat(),
                comment.discussion_id,
                _dumps(comment.rich_text),
            ),
        )
