from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from typing import Callable, Iterable, List, Optional, Tuple

from .models import Task

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8
DEFAULT_HANDOFF_SIZE = 10


class _HandOff:
    """Follow-ups discovered by one task execution.

    At most ``handoff_size`` of them sit in the work queue or run at once; the
    others wait here and are released one by one as released ones finish."""

    __slots__ = ("fn", "waiting", "released")

    def __init__(self, fn: Callable[[Task], None], tasks: Iterable[Task]) -> None:
        self.fn = fn
        self.waiting = deque(tasks)
        self.released = 0


class CrawlController:
    """Runs the tasks of one crawl on a fixed set of worker threads.

    The number of threads does not grow with the size of the task tree: a
    task is retired as soon as its follow-ups are handed off, and waiting
    follow-ups hold no thread. The controller counts tasks that are waiting,
    queued or running, so the crawl knows when the tree is exhausted, and
    carries the cancel event every wait in the crawl observes.
    """

    def __init__(self, workers: int = DEFAULT_WORKERS, handoff_size: int = DEFAULT_HANDOFF_SIZE) -> None:
        self._workers = max(1, int(workers))
        self._handoff_size = max(1, int(handoff_size))

        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._work: "queue.Queue[Optional[Tuple[_HandOff, Task]]]" = queue.Queue()
        self._threads: List[threading.Thread] = []

        self._active = 0
        self._spawned = 0
        self._running = False

    def start(self) -> int:
        """Start the worker threads and return how many are running.

        Workers that fail to start are skipped; RuntimeError is raised only
        when none could be started."""
        with self._lock:
            self._running = True
        for i in range(self._workers):
            thread = threading.Thread(target=self._worker, name=f"crawl-worker-{i}", daemon=True)
            try:
                thread.start()
            except RuntimeError as exc:
                logger.warning("crawl worker %d failed to start: %s", i, exc)
                continue
            self._threads.append(thread)
        if not self._threads:
            self.stop()
            raise RuntimeError("no crawl worker thread could be started")
        return len(self._threads)

    def stop(self) -> None:
        """Cancel the crawl: nothing new is released and every cancellable wait returns."""
        self._cancel.set()
        with self._lock:
            self._running = False
        for _ in self._threads:
            self._work.put(None)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker threads to exit after stop(). Returns False on timeout."""
        for thread in self._threads:
            thread.join(timeout)
        return not any(t.is_alive() for t in self._threads)

    def submit(self, fn: Callable[[Task], None], task: Task) -> bool:
        return self.hand_off(fn, [task])

    def hand_off(self, fn: Callable[[Task], None], tasks: Iterable[Task]) -> bool:
        """Register follow-up tasks to run fn on, in order. Returns False once stopped.

        The tasks are counted before this returns, so a parent that hands
        off its follow-ups before finishing never lets the crawl look idle."""
        tasks = list(tasks)
        with self._lock:
            if not self._running:
                return False
            if not tasks:
                return True
            self._active += len(tasks)
            self._spawned += len(tasks)
            ready = self._release(_HandOff(fn, tasks))
        for item in ready:
            self._work.put(item)
        return True

    def _release(self, handoff: _HandOff) -> List[Tuple[_HandOff, Task]]:
        # caller holds the lock
        ready = []
        while handoff.waiting and handoff.released < self._handoff_size:
            ready.append((handoff, handoff.waiting.popleft()))
            handoff.released += 1
        return ready

    def _worker(self) -> None:
        while True:
            item = self._work.get()
            if item is None:
                return
            handoff, task = item
            try:
                if not self._cancel.is_set():
                    handoff.fn(task)
            except Exception:  # noqa: BLE001
                logger.exception("task %s crashed its worker", task.describe())
            finally:
                self._finish(handoff)

    def _finish(self, handoff: _HandOff) -> None:
        with self._lock:
            handoff.released -= 1
            self._active = max(0, self._active - 1)
            ready = self._release(handoff) if self._running else []
        for item in ready:
            self._work.put(item)

    @property
    def idle(self) -> bool:
        """No task is waiting, queued or running."""
        return self._active == 0

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def active(self) -> int:
        return self._active

    @property
    def spawned(self) -> int:
        return self._spawned

    @property
    def workers(self) -> int:
        """Worker threads that were started."""
        return len(self._threads)
