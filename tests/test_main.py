"""Tests for the sync command."""

import contextlib
import csv
import io
import json
import os
import shutil
import tempfile
import unittest

from fakes import BASE, FakeSession, block_json, comment_json, list_json, ok, page_json
from main import build_crawler, main, run_sync
from notion_mirror.config import CrawlConfig
from notion_mirror.metrics import MetricsCollector
from notion_mirror.storage import SqliteStorage


def _tree():
    return (
        FakeSession()
        .add("GET", f"{BASE}/blocks/P1", ok(block_json("P1", "child_page", parent=("workspace", "workspace"))))
        .add("GET", f"{BASE}/pages/P1", ok(page_json("P1")))
        .add("GET", f"{BASE}/blocks/P1/children", ok(list_json([
            block_json("b0"),
            block_json("b1", "toggle", has_children=True),
        ])))
        .add("GET", f"{BASE}/comments", ok(list_json([comment_json("k1", "P1")])))
    )


class TestRunSync(unittest.TestCase):
    """Verify a sync mirrors records into SQLite and reports failures."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.db = os.path.join(self.tmp, "notion.db")

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _run(self, session, **kwargs):
        config = CrawlConfig(token="secret", root_id="P1", db_path=self.db, qps=0, **kwargs)
        metrics = MetricsCollector()
        crawler = build_crawler(config, metrics, session=session)
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = run_sync(config, crawler=crawler, metrics=metrics)
        return code, out.getvalue(), err.getvalue()

    def test_failed_listing_sets_exit_code(self):
        # b1 has children but its listing answers 404
        code, out, err = self._run(_tree())
        self.assertEqual(code, 1)
        self.assertIn("block_children:b1", err)
        summary = json.loads(out.strip().splitlines()[-1])
        self.assertEqual(summary["errors"], 1)
        self.assertEqual(summary["records"], 5)

        store = SqliteStorage(self.db)
        try:
            self.assertEqual(store.count("pages"), 1)
            self.assertEqual(store.count("blocks"), 3)
            self.assertEqual(store.count("comments"), 1)
            self.assertEqual(store.fetch_row("blocks", "b1")["child_index"], 1)
        finally:
            store.close()

    def test_clean_sync_with_jsonl(self):
        session = _tree().add("GET", f"{BASE}/blocks/b1/children", ok(list_json([block_json("leaf")])))
        jsonl = os.path.join(self.tmp, "out.jsonl")
        code, out, _ = self._run(session, jsonl_path=jsonl)
        self.assertEqual(code, 0)
        self.assertIn("ok page", out)
        with open(jsonl, encoding="utf-8") as f:
            self.assertEqual(len(f.readlines()), 6)
        summary = json.loads(out.strip().splitlines()[-1])
        self.assertEqual(summary["requests"], 5)
        self.assertEqual(summary["repeated"], 0)
        self.assertEqual(
            summary["requests_by_endpoint"],
            {"blocks": 1, "pages": 1, "blocks/children": 2, "comments": 1},
        )

    def test_request_log_written(self):
        session = _tree().add("GET", f"{BASE}/blocks/b1/children", ok(list_json([])))
        path = os.path.join(self.tmp, "requests.csv")
        code, _, _ = self._run(session, metrics_path=path)
        self.assertEqual(code, 0)
        with open(path, encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        self.assertEqual(len(rows), 5)
        self.assertEqual({r["endpoint"] for r in rows}, {"blocks", "pages", "blocks/children", "comments"})


class TestMain(unittest.TestCase):
    """Verify argument handling."""

    def test_missing_token_exits_2(self):
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            code = main(["--token", "", "sync", "https://www.notion.so/"])
        self.assertEqual(code, 2)
        self.assertIn("invalid request", err.getvalue())


if __name__ == "__main__":
    unittest.main()
