"""Scheduler facade: cache fast path, in-flight coalescing, completion fan-out."""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Any

from artifact_cache.builder.backend import CliGeneratorBackend, GeneratorBackend
from artifact_cache.builder.errors import ExecutionError, InvalidRequestError
from artifact_cache.builder.executor import TaskExecutor
from artifact_cache.builder.fingerprint import compute_fingerprint, is_fingerprint
from artifact_cache.builder.locator import OutputLocator
from artifact_cache.builder.models import (
    ArtifactLocation,
    BuildTask,
    NormalizedConfig,
    TaskOutcome,
    TaskState,
    TaskSummary,
    Waiter,
    utc_now,
)
from artifact_cache.builder.normalizer import RequestNormalizer, SelectionNormalizer
from artifact_cache.builder.pool import WorkerPool
from artifact_cache.builder.table import TaskTable
from artifact_cache.builder.workdir import ScratchWorkdirManager
from artifact_cache.config import BuilderSettings, Settings

logger = logging.getLogger(__name__)


class BuildScheduler:
    """Turns requests into cached artifacts with one generator run per fingerprint.

    Fingerprinting happens outside the lock.  Table lookup, the cache probe
    and task registration run under a single lock, so two callers can never
    both miss the table and the cache for the same fingerprint.  Waiters are
    always invoked outside the lock, from the calling thread on a cache hit
    and from the worker thread after a generator run.
    """

    def __init__(
        self,
        *,
        settings: BuilderSettings,
        normalizer: RequestNormalizer | None = None,
        backend: GeneratorBackend | None = None,
    ) -> None:
        self.settings = settings
        self.tool_version = settings.tool_version
        self.normalizer = normalizer or SelectionNormalizer()
        # The generator runs in working_dir, so it must receive absolute paths.
        self.locator = OutputLocator(
            Path(settings.output_root).resolve(),
            extension=settings.artifact_extension,
        )
        self.workdir = ScratchWorkdirManager(
            Path(settings.scratch_root).resolve(),
            prefix=settings.scratch_prefix,
        )
        self.executor = TaskExecutor(
            workdir=self.workdir,
            backend=backend or CliGeneratorBackend(settings.generator_command),
            working_dir=Path(settings.working_dir).resolve(),
        )
        self._lock = threading.Lock()
        self._table = TaskTable()
        self._pool: WorkerPool[BuildTask] = WorkerPool(
            handler=self._run_task,
            concurrency=settings.concurrency,
            name="artifact-builder",
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        normalizer: RequestNormalizer | None = None,
        backend: GeneratorBackend | None = None,
    ) -> BuildScheduler:
        """Build a scheduler from validated settings (environment by default)."""

        settings = settings or Settings.from_env()
        settings.validate()
        return cls(settings=settings.builder, normalizer=normalizer, backend=backend)

    @property
    def output_dir(self) -> Path:
        return self.locator.root_dir

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._table)

    # -- request entry points -------------------------------------------------

    def push(self, request: Any) -> str:
        """Register the request and return its fingerprint without waiting."""

        return self.create_task(request)

    def build(self, request: Any, on_complete: Waiter) -> str:
        """Register the request; ``on_complete`` fires once the artifact is ready."""

        return self.create_task(request, on_complete=on_complete)

    def submit(self, request: Any) -> Future[ArtifactLocation]:
        """Register the request and return a future resolved with the artifact location."""

        future: Future[ArtifactLocation] = Future()
        future.set_running_or_notify_cancel()

        def _resolve(outcome: TaskOutcome) -> None:
            if outcome.error is not None:
                future.set_exception(outcome.error)
            else:
                future.set_result(outcome.location)

        self.create_task(request, on_complete=_resolve)
        return future

    def create_task(self, request: Any, *, on_complete: Waiter | None = None) -> str:
        """Return the fingerprint for ``request``, starting a build only when needed.

        The return value is the registration notice; ``on_complete`` (if any)
        receives the outcome after the artifact exists or generation failed.
        """

        config = self._normalize(request)
        fingerprint = compute_fingerprint(self.tool_version, config)
        location = self.locator.locate(fingerprint)

        with self._lock:
            task = self._table.lookup(fingerprint)
            if task is not None:
                if on_complete is not None:
                    task.waiters.append(on_complete)
                logger.info(
                    "Job is already in queue: fingerprint=%s queue_length=%d",
                    fingerprint,
                    len(self._table),
                )
                return fingerprint

            if not self.locator.exists(fingerprint):
                task = BuildTask(
                    fingerprint=fingerprint,
                    request=request,
                    config=config,
                    scratch_dir=self.workdir.path_for(fingerprint),
                    location=location,
                    created_monotonic=time.monotonic(),
                )
                if on_complete is not None:
                    task.waiters.append(on_complete)
                self._table.register(task)
                try:
                    self._pool.push(task, lambda error: self._finish(fingerprint, error))
                except RuntimeError:
                    self._table.remove(fingerprint)
                    raise
                logger.info(
                    "New job created: fingerprint=%s queue_length=%d",
                    fingerprint,
                    len(self._table),
                )
                return fingerprint

        logger.info("Cache hit: fingerprint=%s file=%s", fingerprint, location.file)
        if on_complete is not None:
            _notify(on_complete, TaskOutcome(fingerprint=fingerprint, location=location))
        return fingerprint

    # -- status ---------------------------------------------------------------

    def find_task(self, fingerprint: str) -> TaskSummary | None:
        """Snapshot of the in-flight task for ``fingerprint``, if any."""

        if not is_fingerprint(fingerprint):
            return None
        with self._lock:
            task = self._table.lookup(fingerprint)
            if task is None:
                return None
            return task.summary(in_flight=len(self._table))

    def check_result(self, fingerprint: str) -> ArtifactLocation | None:
        """Location of a finished artifact, or ``None`` while building or unknown.

        The in-flight check comes first: a file at the output path may be
        stale or partial while a task for the fingerprint is still running.
        """

        if not is_fingerprint(fingerprint):
            return None
        with self._lock:
            if fingerprint in self._table:
                return None
            if not self.locator.exists(fingerprint):
                return None
        return self.locator.locate(fingerprint)

    # -- maintenance ----------------------------------------------------------

    def prune_scratch(self, max_age_seconds: float | None = None) -> list[Path]:
        """Remove scratch directories left by failed runs, skipping in-flight tasks."""

        if max_age_seconds is None:
            max_age_seconds = self.settings.scratch_retention_hours * 3600
        with self._lock:
            return self.workdir.sweep(
                max_age_seconds=max_age_seconds,
                keep=self._table.fingerprints(),
            )

    def join(self, timeout: float | None = None) -> bool:
        """Wait until queued tasks finished and their waiters were notified."""

        return self._pool.join(timeout)

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> BuildScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)

    # -- internals ------------------------------------------------------------

    def _normalize(self, request: Any) -> NormalizedConfig:
        try:
            config = self.normalizer.normalize(request)
        except InvalidRequestError as error:
            logger.warning("Invalid request: %s", error)
            raise
        if not config.items:
            logger.warning("Invalid request: empty selection for %r", config.name)
            raise InvalidRequestError("Invalid config: nothing selected.")
        # The raw request is written to the scratch dir as config.json.
        try:
            json.dumps(request, ensure_ascii=False)
        except (TypeError, ValueError) as error:
            logger.warning("Invalid request: %s", error)
            raise InvalidRequestError(f"Request is not serializable: {error}") from error
        return config

    def _run_task(self, task: BuildTask) -> None:
        with self._lock:
            task.state = TaskState.RUNNING
            task.started_at = utc_now()
        self.executor.run(task)

    def _finish(self, fingerprint: str, error: Exception | None) -> None:
        with self._lock:
            task = self._table.remove(fingerprint)
            remaining = len(self._table)

        if error is None:
            outcome = TaskOutcome(fingerprint=fingerprint, location=task.location)
        else:
            outcome = TaskOutcome(
                fingerprint=fingerprint,
                error=_as_execution_error(task, error),
            )
        logger.info(
            "Job finished: fingerprint=%s ok=%s waiters=%d queue_length=%d",
            fingerprint,
            outcome.ok,
            len(task.waiters),
            remaining,
        )
        for waiter in task.waiters:
            _notify(waiter, outcome)


def _as_execution_error(task: BuildTask, error: Exception) -> ExecutionError:
    if isinstance(error, ExecutionError):
        return error
    logger.error(
        "[artifact::%s] unexpected failure after %.3fs: %r",
        task.fingerprint,
        time.monotonic() - task.created_monotonic,
        error,
    )
    wrapped = ExecutionError(
        f"Unexpected build failure: {error}",
        fingerprint=task.fingerprint,
        step="unexpected",
    )
    wrapped.__cause__ = error
    return wrapped


def _notify(waiter: Waiter, outcome: TaskOutcome) -> None:
    try:
        waiter(outcome)
    except Exception:
        logger.exception("Waiter failed for fingerprint %s", outcome.fingerprint)

