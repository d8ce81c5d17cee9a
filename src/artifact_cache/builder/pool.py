"""Fixed-size thread pool draining an unbounded intake queue."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DoneCallback = Callable[[Exception | None], None]

_STOP = object()


class WorkerPool(Generic[T]):
    """Runs ``handler(item)`` for pushed items, at most ``concurrency`` at a time.

    Each item's ``on_done`` is called exactly once from the worker thread,
    with ``None`` on success or the exception raised by the handler.
    """

    def __init__(
        self,
        *,
        handler: Callable[[T], None],
        concurrency: int,
        name: str = "artifact-worker",
    ) -> None:
        if concurrency <= 0:
            raise ValueError("Worker pool concurrency must be > 0.")
        self.concurrency = concurrency
        self.name = name
        self._handler = handler
        self._queue: queue.Queue[tuple[T, DoneCallback] | object] = queue.Queue()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._unfinished = 0
        self._threads: list[threading.Thread] = []
        self._active = 0
        self._closed = False

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def push(self, item: T, on_done: DoneCallback) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker pool is shut down.")
            self._ensure_started()
            self._unfinished += 1
            self._queue.put((item, on_done))

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every pushed item finished and its ``on_done`` returned."""

        with self._idle:
            return self._idle.wait_for(lambda: self._unfinished == 0, timeout)

    def shutdown(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting items; workers exit after draining queued ones."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            threads = list(self._threads)
        for _ in threads:
            self._queue.put(_STOP)
        if wait:
            for thread in threads:
                thread.join(timeout=timeout)
        logger.info("Worker pool %s stopped", self.name)

    def _ensure_started(self) -> None:
        if self._threads:
            return
        for index in range(self.concurrency):
            thread = threading.Thread(
                target=self._worker_loop,
                daemon=True,
                name=f"{self.name}-{index}",
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Worker pool %s started with %d threads", self.name, self.concurrency)

    def _worker_loop(self) -> None:
        while True:
            entry = self._queue.get()
            if entry is _STOP:
                return
            item, on_done = entry  # type: ignore[misc]
            try:
                self._run_one(item, on_done)
            finally:
                with self._idle:
                    self._unfinished -= 1
                    if self._unfinished == 0:
                        self._idle.notify_all()

    def _run_one(self, item: T, on_done: DoneCallback) -> None:
        with self._lock:
            self._active += 1
        error: Exception | None = None
        try:
            self._handler(item)
        except Exception as exc:  # noqa: BLE001
            error = exc
        finally:
            with self._lock:
                self._active -= 1
        try:
            on_done(error)
        except Exception:
            logger.exception("Completion callback failed in %s", threading.current_thread().name)
