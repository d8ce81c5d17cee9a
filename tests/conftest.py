"""Shared test fixtures."""

from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path

import pytest

from artifact_cache.builder.backend import GeneratorRunRequest, GeneratorRunResult
from artifact_cache.config import BuilderSettings

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

ECHO_GENERATOR_COMMAND = (
    sys.executable,
    "-m",
    "artifact_cache.builder.backend.echo_generator",
)


class FakeGenerator:
    """In-process generator backend recording calls and peak parallelism."""

    def __init__(self, *, delay_seconds: float = 0.0) -> None:
        self.delay_seconds = delay_seconds
        self.gate: threading.Event | None = None
        self.started = threading.Event()
        self.fail_next = 0
        self.write_before_gate = False
        self.calls: list[GeneratorRunRequest] = []
        self.seen_files: list[set[str]] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def hold(self) -> threading.Event:
        self.gate = threading.Event()
        return self.gate

    def run(self, request: GeneratorRunRequest) -> GeneratorRunResult:
        with self._lock:
            self.calls.append(request)
            self.seen_files.append({path.name for path in request.scratch_dir.iterdir()})
            self.active += 1
            self.peak = max(self.peak, self.active)
            should_fail = self.fail_next > 0
            if should_fail:
                self.fail_next -= 1
        started = time.monotonic()
        try:
            if self.write_before_gate:
                request.output_path.write_bytes(b"partial")
            self.started.set()
            if self.gate is not None:
                self.gate.wait(timeout=10)
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            if should_fail:
                request.stderr_path.write_text("fake generator failure\n", "utf-8")
                exit_code = 2
            else:
                request.output_path.write_bytes(b"artifact")
                exit_code = 0
            return GeneratorRunResult(
                exit_code=exit_code,
                elapsed_seconds=time.monotonic() - started,
                stdout_path=request.stdout_path,
                stderr_path=request.stderr_path,
            )
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture()
def builder_settings(tmp_path: Path) -> BuilderSettings:
    return BuilderSettings(
        concurrency=2,
        scratch_root=tmp_path / "scratch",
        output_root=tmp_path / "download",
        generator_command=ECHO_GENERATOR_COMMAND,
        working_dir=tmp_path,
        tool_version="test-1",
    )


@pytest.fixture()
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def echo_generator_env(monkeypatch):
    """Make the package importable from generator subprocesses."""

    existing = os.environ.get("PYTHONPATH")
    value = str(SRC_DIR) if not existing else os.pathsep.join([str(SRC_DIR), existing])
    monkeypatch.setenv("PYTHONPATH", value)
    monkeypatch.delenv("ARTIFACT_CACHE_ECHO_FAIL", raising=False)
