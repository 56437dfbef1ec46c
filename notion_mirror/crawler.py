from __future__ import annotations

import logging
import queue
import threading
from functools import partial
from typing import Any, Iterator, List, Optional, Tuple, Union

from .api import BASE_URL
from .controller import DEFAULT_WORKERS, CrawlController
from .errors import CrawlCancelled, InvalidRequest, NotionError
from .executor import RequestExecutor
from .models import CrawlError, FetchObject, FetchPage, FetchResult, ObjectResult, Task
from .pagination import ListingKind, ListPage, PaginationCursor
from .records import Block, Database, ObjectType, Page, Record

logger = logging.getLogger(__name__)

CrawlItem = Union[Record, CrawlError]

DEFAULT_QUEUE_SIZE = 10

_POLL_SECS = 0.1


def block_follow_ups(block: Block, base_url: str = BASE_URL) -> List[Task]:
    """Child pages and databases are fetched as objects; other blocks list their children."""
    if block.is_child_page:
        return [FetchObject(ObjectType.PAGE, block.id)]
    if block.is_child_database:
        return [FetchObject(ObjectType.DATABASE, block.id)]
    if block.has_children:
        return [FetchPage(PaginationCursor.block_children(block.id, base_url))]
    return []


def discover(result: FetchResult, base_url: str = BASE_URL) -> Tuple[List[Record], List[Task]]:
    """Return the records a result emits and the follow-up tasks it spawns.

    This is the only place that decides how the crawl grows:

    ==========================  ================================================
    result                      follow-ups
    ==========================  ================================================
    page                        its block children, its comments
    database                    its query
    block                       see block_follow_ups()
    block-children page         block_follow_ups() per block, next page
    database-query page         query per database, block children per page,
                                next page
    comments page               next page
    ==========================  ================================================
    """
    if isinstance(result, ObjectResult):
        record = result.record
        if isinstance(record, Page):
            return [record], [
                FetchPage(PaginationCursor.block_children(record.id, base_url)),
                FetchPage(PaginationCursor.comments(record.id, base_url)),
            ]
        if isinstance(record, Database):
            return [record], [FetchPage(PaginationCursor.database_query(record.id, base_url))]
        if isinstance(record, Block):
            return [record], block_follow_ups(record, base_url)
        return [record], []

    if isinstance(result, ListPage):
        follow_ups: List[Task] = []
        if result.listing is ListingKind.BLOCK_CHILDREN:
            for block in result.items:
                follow_ups.extend(block_follow_ups(block, base_url))
        elif result.listing is ListingKind.DATABASE_QUERY:
            for item in result.items:
                if isinstance(item, Database):
                    follow_ups.append(FetchPage(PaginationCursor.database_query(item.id, base_url)))
                else:
                    follow_ups.append(FetchPage(PaginationCursor.block_children(item.id, base_url)))
        if result.next_cursor is not None:
            follow_ups.append(FetchPage(result.next_cursor))
        return list(result.items), follow_ups

    raise TypeError(f"unsupported result: {type(result).__name__}")


def _offer(q: "queue.Queue[Any]", item: Any, cancel: threading.Event) -> bool:
    """Put with backpressure; gives up and returns False once the crawl is cancelled."""
    while not cancel.is_set():
        try:
            q.put(item, timeout=_POLL_SECS)
            return True
        except queue.Full:
            continue
    return False


class Crawler:
    """Walks a content tree from one root id and streams every node found.

    Tasks run on a fixed set of worker threads owned by a CrawlController.
    Follow-ups discovered by a task are handed off to the controller, which
    lets at most queue_size of them per task into the work queue at a time.
    Records and errors go to one bounded output queue read by the consumer
    of crawl(), so a slow consumer slows the whole crawl.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        output_size: int = DEFAULT_QUEUE_SIZE,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self._executor = executor
        self._queue_size = max(1, queue_size)
        self._output_size = max(1, output_size)
        self._workers = max(1, workers)
        self._controller: Optional[CrawlController] = None

    def crawl(self, root_id: str) -> Iterator[CrawlItem]:
        """Start a crawl from root_id, which is always fetched as a block.

        Returns a lazy, single-use iterator of records and CrawlError items
        in no particular order. Closing it (or dropping out of the loop)
        cancels the crawl."""
        if not root_id or not root_id.strip():
            raise InvalidRequest("empty root id")
        return self._stream(FetchObject(ObjectType.BLOCK, root_id.strip()))

    @property
    def controller(self) -> Optional[CrawlController]:
        """Controller of the most recent crawl."""
        return self._controller

    def _stream(self, root: Task) -> Iterator[CrawlItem]:
        controller = CrawlController(workers=self._workers, handoff_size=self._queue_size)
        self._controller = controller
        output: "queue.Queue[Any]" = queue.Queue(maxsize=self._output_size)

        try:
            try:
                started = controller.start()
            except RuntimeError as exc:
                logger.error("crawl from %s could not start: %s", root.describe(), exc)
                yield CrawlError(task=root, error=exc)
                return

            logger.info("crawl started from %s on %d workers", root.describe(), started)
            controller.submit(partial(self._execute, controller, output), root)
            while True:
                try:
                    item = output.get(timeout=_POLL_SECS)
                except queue.Empty:
                    # records are queued before their task is retired
                    if controller.idle and output.empty():
                        break
                    continue
                yield item
            logger.info("crawl finished after %d tasks", controller.spawned)
        finally:
            controller.stop()

    def _execute(self, controller: CrawlController, output: "queue.Queue[Any]", task: Task) -> None:
        cancel = controller.cancel_event
        try:
            result = self._executor.execute(task, cancel)
            records, follow_ups = discover(result, self._executor.base_url)
        except CrawlCancelled:
            return
        except NotionError as exc:
            logger.warning("task %s failed: %s", task.describe(), exc)
            _offer(output, CrawlError(task=task, error=exc), cancel)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("task %s crashed", task.describe())
            _offer(output, CrawlError(task=task, error=exc), cancel)
            return

        for record in records:
            if not _offer(output, record, cancel):
                return
        controller.hand_off(partial(self._execute, controller, output), follow_ups)
