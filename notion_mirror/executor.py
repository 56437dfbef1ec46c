from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

import requests

from .api import BASE_URL, build_headers, check_retry_after, check_status, decode_json, object_url
from .errors import CrawlCancelled, InvalidRequest, InvalidResponse, RequestFailed, Throttled
from .metrics import MetricsCollector
from .models import FetchObject, FetchPage, FetchResult, ObjectResult, RequestEvent, Task
from .rate_limiter import RateLimiter
from .records import RECORD_TYPES

logger = logging.getLogger(__name__)


class RequestExecutor:
    """Runs one task against the API and returns its decoded FetchResult.

    Failures are raised as InvalidRequest, InvalidResponse or RequestFailed.
    A 429 with a Retry-After hint is never raised: the executor sleeps for
    the hint and re-issues the same task (same cursor state) after taking a
    new rate-limiter token, as many times as the API keeps throttling.
    """

    def __init__(
        self,
        token: str,
        rate_limiter: RateLimiter,
        metrics: Optional[MetricsCollector] = None,
        session: Optional[Any] = None,
        timeout: float = 30,
        base_url: str = BASE_URL,
    ) -> None:
        self._headers = build_headers(token)
        self._rate_limiter = rate_limiter
        self._metrics = metrics
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout
        self.base_url = base_url.rstrip("/")

    def execute(self, task: Task, cancel: Optional[threading.Event] = None) -> FetchResult:
        attempt = 0
        while True:
            attempt += 1
            if not self._rate_limiter.acquire(cancel):
                raise CrawlCancelled()
            try:
                return self._fetch(task)
            except Throttled as exc:
                logger.warning(
                    "throttled on %s (attempt %d), retrying in %ds",
                    task.describe(), attempt, exc.retry_after,
                )
                if not self._pause(exc.retry_after, cancel):
                    raise CrawlCancelled() from None

    def _fetch(self, task: Task) -> FetchResult:
        if isinstance(task, FetchObject):
            url = object_url(task.kind, task.object_id, self.base_url)
            payload = self.send("GET", url)
            try:
                record = RECORD_TYPES[task.kind].from_json(payload)
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidResponse(f"decode failed: {exc}, {url}") from exc
            return ObjectResult(record)
        if isinstance(task, FetchPage):
            return task.cursor.fetch_current_page(self.send)
        raise InvalidRequest(f"unsupported task: {task!r}")

    def send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Issue one HTTP request and return the decoded JSON body of a 2xx response."""
        start = time.time()
        status_code = None
        error_type = None
        try:
            response = self._session.request(
                method=method,
                url=url,
                params=params or None,
                json=json,
                headers=self._headers,
                timeout=self._timeout,
            )
            status_code = getattr(response, "status_code", None)
            check_retry_after(response)
            check_status(response)
            return decode_json(response)
        except requests.Timeout as exc:
            error_type = "Timeout"
            raise RequestFailed(f"request timed out: {method} {url}: {exc}") from exc
        except requests.ConnectionError as exc:
            error_type = "ConnectionError"
            raise RequestFailed(f"connection failed: {method} {url}: {exc}") from exc
        except requests.RequestException as exc:
            error_type = type(exc).__name__
            raise RequestFailed(f"request error: {method} {url}: {exc}") from exc
        except Exception as exc:
            error_type = type(exc).__name__
            raise
        finally:
            latency_ms = int((time.time() - start) * 1000)
            logger.debug("%s %s -> %s in %dms", method, url, status_code, latency_ms)
            if self._metrics:
                self._metrics.record_request(
                    RequestEvent(
                        method=method,
                        url=url,
                        success=error_type is None,
                        status_code=status_code,
                        latency_ms=latency_ms,
                        error_type=error_type,
                    )
                )

    @staticmethod
    def _pause(seconds: float, cancel: Optional[threading.Event]) -> bool:
        """Sleep for a cool-down. Returns False if the crawl was cancelled meanwhile."""
        if cancel is None:
            time.sleep(seconds)
            return True
        return not cancel.wait(seconds)
