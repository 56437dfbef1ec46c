"""Tests for task, result and metrics data classes."""

import unittest

from notion_mirror.errors import InvalidResponse
from notion_mirror.models import CrawlError, FetchObject, FetchPage, MetricsSnapshot
from notion_mirror.pagination import PaginationCursor
from notion_mirror.records import ObjectType


class TestTasks(unittest.TestCase):
    """Verify task creation and immutability."""

    def test_fetch_object_describe(self):
        task = FetchObject(ObjectType.BLOCK, "b1")
        self.assertEqual(task.describe(), "block:b1")

    def test_fetch_page_describe_includes_offset(self):
        cursor = PaginationCursor.block_children("b1").advance("c1", 20)
        self.assertEqual(FetchPage(cursor).describe(), "block_children:b1@20")

    def test_task_is_immutable(self):
        """Frozen dataclass should raise on attribute assignment."""
        task = FetchObject(ObjectType.PAGE, "p1")
        with self.assertRaises(AttributeError):
            task.object_id = "p2"

    def test_tasks_compare_by_value(self):
        self.assertEqual(
            FetchPage(PaginationCursor.comments("p1")),
            FetchPage(PaginationCursor.comments("p1")),
        )


class TestCrawlError(unittest.TestCase):
    """Verify CrawlError accessors."""

    def test_error_fields(self):
        err = CrawlError(task=FetchObject(ObjectType.BLOCK, "b1"), error=InvalidResponse("status: 500"))
        self.assertEqual(err.error_type, "InvalidResponse")
        self.assertEqual(err.message, "status: 500")


class TestMetricsSnapshot(unittest.TestCase):
    """Verify MetricsSnapshot dataclass creation."""

    def test_create_snapshot(self):
        snap = MetricsSnapshot(
            window_secs=30,
            total_requests=100,
            success_count=90,
            timeout_count=5,
            conn_error_count=2,
            http_429_count=3,
            error_count=10,
            avg_latency_ms=200.5,
            timestamp=1000000.0,
        )
        self.assertEqual(snap.total_requests, 100)
        self.assertEqual(snap.error_count, 10)
        self.assertEqual(snap.avg_latency_ms, 200.5)


if __name__ == "__main__":
    unittest.main()
