from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Set, Tuple

from notion_mirror.config import (
    DEFAULT_BURST,
    DEFAULT_DB_PATH,
    DEFAULT_QPS,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    CrawlConfig,
    load_config,
)
from notion_mirror.crawler import Crawler
from notion_mirror.errors import InvalidRequest
from notion_mirror.executor import RequestExecutor
from notion_mirror.metrics import MetricsCollector
from notion_mirror.models import CrawlError
from notion_mirror.rate_limiter import RateLimiter
from notion_mirror.records import Block, ObjectType
from notion_mirror.storage import JsonlStorage, SqliteStorage, StorageBase

logger = logging.getLogger("notion_mirror")


def build_crawler(config: CrawlConfig, metrics: Optional[MetricsCollector] = None, session=None) -> Crawler:
    rate_limiter = RateLimiter(qps=config.qps, burst=config.burst)
    executor = RequestExecutor(
        token=config.token,
        rate_limiter=rate_limiter,
        metrics=metrics,
        session=session,
        timeout=config.timeout,
    )
    return Crawler(executor, queue_size=config.queue_size, output_size=config.queue_size, workers=config.workers)


def run_sync(config: CrawlConfig, crawler: Optional[Crawler] = None, metrics: Optional[MetricsCollector] = None) -> int:
    """Mirror everything under config.root_id into the configured stores."""
    metrics = metrics or MetricsCollector()
    crawler = crawler or build_crawler(config, metrics)
    stores: List[StorageBase] = [SqliteStorage(config.db_path)]
    if config.jsonl_path:
        stores.append(JsonlStorage(config.jsonl_path))
    logger.info("sync root=%s db=%s jsonl=%s qps=%s", config.root_id, config.db_path, config.jsonl_path, config.qps)

    seen: Set[Tuple[ObjectType, str]] = set()
    ok = 0
    fail = 0
    repeated = 0
    try:
        for item in crawler.crawl(config.root_id):
            if isinstance(item, CrawlError):
                fail += 1
                print(f"error task={item.task.describe()} type={item.error_type} error={item.message}", file=sys.stderr)
                continue

            ok += 1
            key = (item.kind, item.id)
            if key in seen:
                repeated += 1
                print(f"repeated {item.kind.value} {item.id}", file=sys.stderr)
            seen.add(key)

            detail = ""
            if isinstance(item, Block):
                detail = f" {item.block_type}"
                if item.child_index is not None:
                    detail += f" #{item.child_index}"
            print(f"ok {item.kind.value:8} {item.id}{detail}")
            for store in stores:
                store.write(item)
    finally:
        for store in stores:
            store.close()

    if config.metrics_path:
        rows = metrics.write(config.metrics_path)
        logger.info("wrote %d request rows to %s", rows, config.metrics_path)

    window = 24 * 3600
    snap = metrics.snapshot(window_secs=window)
    summary = {
        "root": config.root_id,
        "records": ok,
        "errors": fail,
        "repeated": repeated,
        "requests": snap.total_requests,
        "requests_by_endpoint": metrics.by_endpoint(window_secs=window),
        "http_429": snap.http_429_count,
        "avg_latency_ms": round(snap.avg_latency_ms, 1),
    }
    print(json.dumps(summary, ensure_ascii=False))
    return 1 if fail else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="notion-mirror", description="Mirror a Notion content tree into SQLite")
    parser.add_argument("--token", help="Integration token (default: env NOTION_TOKEN)")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database file path")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    sub = parser.add_subparsers(dest="cmd", required=True)
    sync = sub.add_parser("sync", help="Sync all pages/databases/comments into db, recursively")
    sync.add_argument("page", nargs="?", help="Link or id of the root page (default: env NOTION_ROOT_PAGE)")
    sync.add_argument("--jsonl", help="Also append every record to this JSONL file")
    sync.add_argument("--metrics-out", help="Write the per-request log here (.csv for CSV, JSON otherwise)")
    sync.add_argument("--qps", type=float, default=DEFAULT_QPS, help="Global request rate")
    sync.add_argument("--burst", type=int, default=DEFAULT_BURST, help="Requests allowed in a burst")
    sync.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="HTTP timeout in seconds")
    sync.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Worker threads running requests")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "sync":
        try:
            config = load_config(
                token=args.token,
                page=args.page,
                db_path=args.db,
                jsonl_path=args.jsonl,
                metrics_path=args.metrics_out,
                qps=args.qps,
                burst=args.burst,
                timeout=args.timeout,
                workers=args.workers,
            )
            metrics = MetricsCollector()
            crawler = build_crawler(config, metrics)
        except InvalidRequest as exc:
            print(f"invalid request: {exc}", file=sys.stderr)
            return 2
        return run_sync(config, crawler=crawler, metrics=metrics)

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
