"""Subprocess-based generator runner."""

from __future__ import annotations

import subprocess
import time

from artifact_cache.builder.backend.base import GeneratorRunRequest, GeneratorRunResult


class GeneratorRunError(RuntimeError):
    """Generator process could not be started."""


class CliGeneratorBackend:
    """Run ``<command...> <name> <scratch_dir> <output_path>`` and wait for it.

    The call blocks its worker thread for the whole generator run; there is
    no timeout and no way to abort a started process.
    """

    def __init__(self, command: tuple[str, ...]) -> None:
        if not command:
            raise ValueError("Generator command must not be empty.")
        self.command = command

    def run(self, request: GeneratorRunRequest) -> GeneratorRunResult:
        run_args = [
            *self.command,
            request.name,
            str(request.scratch_dir),
            str(request.output_path),
        ]
        started = time.monotonic()
        try:
            with (
                request.stdout_path.open("w", encoding="utf-8") as stdout_handle,
                request.stderr_path.open("w", encoding="utf-8") as stderr_handle,
            ):
                process = subprocess.run(  # noqa: S603
                    run_args,
                    cwd=request.working_dir,
                    stdin=subprocess.DEVNULL,
                    stdout=stdout_handle,
                    stderr=stderr_handle,
                    text=True,
                    check=False,
                )
        except FileNotFoundError as error:
            raise GeneratorRunError(f"Generator command not found: {self.command[0]}") from error
        except OSError as error:
            raise GeneratorRunError(f"Generator failed to start: {error}") from error

        return GeneratorRunResult(
            exit_code=process.returncode,
            elapsed_seconds=time.monotonic() - started,
            stdout_path=request.stdout_path,
            stderr_path=request.stderr_path,
        )
