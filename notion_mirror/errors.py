from __future__ import annotations


class NotionError(Exception):
    """Base class for every failure raised by the mirror."""


class InvalidRequest(NotionError):
    """Local input is unusable (bad token, empty id, bad root link)."""


class InvalidResponse(NotionError):
    """Non-2xx status, undecodable body, or a 429 without a usable Retry-After."""


class RequestFailed(NotionError):
    """Transport-level failure: connection error, timeout, ..."""


class Throttled(NotionError):
    """HTTP 429 carrying a cool-down hint. Absorbed by the executor's retry loop."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"retry after {retry_after}s")
        self.retry_after = retry_after


class CrawlCancelled(Exception):
    """The crawl was cancelled while a task was waiting."""
