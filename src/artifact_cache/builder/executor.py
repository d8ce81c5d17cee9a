"""Runs one build task: scratch setup, generator call, cleanup."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from artifact_cache.builder.backend import (
    GeneratorBackend,
    GeneratorRunError,
    GeneratorRunRequest,
)
from artifact_cache.builder.errors import ExecutionError
from artifact_cache.builder.models import BuildTask
from artifact_cache.builder.workdir import ScratchWorkdirManager, write_json

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2_000


class TaskExecutor:
    """Executes tasks step by step; the first failing step aborts the rest.

    A failed task keeps its scratch directory for inspection.
    """

    def __init__(
        self,
        *,
        workdir: ScratchWorkdirManager,
        backend: GeneratorBackend,
        working_dir: Path,
    ) -> None:
        self.workdir = workdir
        self.backend = backend
        self.working_dir = working_dir

    def run(self, task: BuildTask) -> None:
        log_prefix = f"[artifact::{task.fingerprint}]"
        time_start = time.monotonic()
        logger.info(
            "%s Start generation: %s",
            log_prefix,
            json.dumps(task.request, ensure_ascii=False, default=str),
        )

        step = "remove_stale_scratch"
        try:
            self.workdir.remove_stale(task.scratch_dir)

            step = "create_scratch"
            paths = self.workdir.create(task.scratch_dir)
            task.output_path.parent.mkdir(parents=True, exist_ok=True)

            step = "write_request"
            write_json(paths.request_path, task.request)

            # Both files exist before the generator starts.
            step = "write_config"
            write_json(paths.generator_config_path, task.config.to_payload())

            step = "run_generator"
            result = self.backend.run(
                GeneratorRunRequest(
                    name=task.config.name,
                    scratch_dir=task.scratch_dir,
                    output_path=task.output_path,
                    working_dir=self.working_dir,
                    stdout_path=paths.stdout_path,
                    stderr_path=paths.stderr_path,
                ),
            )
            if result.exit_code != 0:
                raise ExecutionError(
                    f"Generator exited with code {result.exit_code}: "
                    f"{_read_tail(result.stderr_path)}",
                    fingerprint=task.fingerprint,
                    step=step,
                    exit_code=result.exit_code,
                )

            step = "cleanup_scratch"
            self.workdir.discard(task.scratch_dir)
        except ExecutionError as error:
            self._log_failure(log_prefix, step, time_start, error)
            raise
        except (GeneratorRunError, OSError, TypeError, ValueError) as error:
            self._log_failure(log_prefix, step, time_start, error)
            raise ExecutionError(
                f"{step} failed: {error}",
                fingerprint=task.fingerprint,
                step=step,
            ) from error

        time_end = time.monotonic()
        logger.info(
            "%s Generated in %.3fs (real: %.3fs)",
            log_prefix,
            time_end - time_start,
            time_end - task.created_monotonic,
        )

    def _log_failure(
        self,
        log_prefix: str,
        step: str,
        time_start: float,
        error: Exception,
    ) -> None:
        logger.error(
            "%s %s failed after %.3fs: %s",
            log_prefix,
            step,
            time.monotonic() - time_start,
            error,
        )


def _read_tail(path: Path) -> str:
    try:
        text = path.read_text("utf-8", errors="replace")
    except OSError:
        return "<stderr unavailable>"
    tail = text.strip()[-_STDERR_TAIL_CHARS:]
    return tail or "<no stderr>"
