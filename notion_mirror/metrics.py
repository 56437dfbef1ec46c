from __future__ import annotations

import csv
import datetime as _dt
import json
import time
from collections import Counter, deque
from dataclasses import asdict
from threading import Lock
from typing import Any, Deque, Dict, List, Tuple
from urllib.parse import urlsplit

from .models import MetricsSnapshot, RequestEvent

EXPORT_FIELDS = ["time", "method", "endpoint", "url", "success", "status_code", "latency_ms", "error_type"]


def endpoint_of(url: str) -> str:
    """Collapse a request URL into its endpoint, e.g. ".../blocks/<id>/children" -> "blocks/children"."""
    parts = [p for p in urlsplit(url).path.split("/") if p]
    if parts and parts[0].startswith("v") and parts[0][1:].isdigit():
        parts = parts[1:]
    if not parts:
        return ""
    # every other segment is an object id
    return "/".join(parts[::2])


class MetricsCollector:
    """Thread-safe collector of per-request statistics for one crawl.

    Every HTTP attempt is recorded, throttled ones included, so a crawl that
    spent most of its time cooling down shows up in the 429 count."""

    def __init__(self, maxlen: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[Tuple[float, RequestEvent]] = deque(maxlen=maxlen)

    def record_request(self, event: RequestEvent) -> None:
        with self._lock:
            self._events.append((time.time(), event))

    def _window(self, window_secs: float) -> List[RequestEvent]:
        cutoff = time.time() - window_secs
        with self._lock:
            return [e for ts, e in self._events if ts >= cutoff]

    def snapshot(self, window_secs: int) -> MetricsSnapshot:
        """Aggregate the events of the last window_secs seconds."""
        events = self._window(window_secs)
        total = len(events)
        success_count = sum(1 for e in events if e.success)
        return MetricsSnapshot(
            window_secs=window_secs,
            total_requests=total,
            success_count=success_count,
            timeout_count=sum(1 for e in events if e.error_type == "Timeout"),
            conn_error_count=sum(1 for e in events if e.error_type == "ConnectionError"),
            http_429_count=sum(1 for e in events if e.status_code == 429),
            error_count=total - success_count,
            avg_latency_ms=(sum(e.latency_ms for e in events) / total) if total else 0.0,
            timestamp=time.time(),
        )

    def by_endpoint(self, window_secs: int) -> Dict[str, int]:
        """Request counts per endpoint over the last window_secs seconds."""
        return dict(Counter(endpoint_of(e.url) for e in self._window(window_secs)))

    def rows(self) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        return [
            {
                "time": _dt.datetime.fromtimestamp(ts, _dt.timezone.utc).isoformat(),
                "endpoint": endpoint_of(e.url),
                **asdict(e),
            }
            for ts, e in events
        ]

    def write(self, path: str) -> int:
        """Write every recorded request to path, as CSV for a .csv file and JSON otherwise.

        Returns the number of rows written."""
        rows = self.rows()
        with open(path, "w", encoding="utf-8", newline="") as f:
            if path.lower().endswith(".csv"):
                writer = csv.DictWriter(f, fieldnames=EXPORT_FIELDS)
                writer.writeheader()
                writer.writerows(rows)
            else:
                json.dump(rows, f, ensure_ascii=False, indent=2)
        return len(rows)
