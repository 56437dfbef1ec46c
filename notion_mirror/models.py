from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .pagination import ListPage, PaginationCursor
from .records import ObjectType, Record


@dataclass(frozen=True)
class FetchObject:
    """Fetch a single block, page or database (or user) by id."""

    kind: ObjectType
    object_id: str

    def describe(self) -> str:
        return f"{self.kind.value}:{self.object_id}"


@dataclass(frozen=True)
class FetchPage:
    """Fetch the current page of a listing."""

    cursor: PaginationCursor

    def describe(self) -> str:
        c = self.cursor
        return f"{c.listing.value}:{c.parent_id}@{c.start_index}"


Task = Union[FetchObject, FetchPage]


@dataclass(frozen=True)
class ObjectResult:
    record: Record


FetchResult = Union[ObjectResult, ListPage]


@dataclass(frozen=True)
class CrawlError:
    """A task that failed. Its subtree is not crawled."""

    task: Task
    error: Exception

    @property
    def error_type(self) -> str:
        return type(self.error).__name__

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class RequestEvent:
    method: str
    url: str
    success: bool
    status_code: Optional[int]
    latency_ms: int
    error_type: Optional[str]


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_requests: int
    success_count: int
    timeout_count: int
    conn_error_count: int
    http_429_count: int
    error_count: int
    avg_latency_ms: float
    timestamp: float
