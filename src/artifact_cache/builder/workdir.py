"""Per-task scratch directory helpers."""

from __future__ import annotations

import json
import logging
import shutil
import time
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

REQUEST_FILE = "config.json"
GENERATOR_CONFIG_FILE = "generator-config.json"
STDOUT_LOG_FILE = "generator_stdout.log"
STDERR_LOG_FILE = "generator_stderr.log"


@dataclass(slots=True)
class ScratchPaths:
    """Files inside one task scratch directory."""

    root: Path
    request_path: Path
    generator_config_path: Path
    stdout_path: Path
    stderr_path: Path


class ScratchWorkdirManager:
    """Creates deterministic per-fingerprint scratch directories."""

    def __init__(self, root_dir: Path, *, prefix: str = "artifact-") -> None:
        self.root_dir = root_dir
        self.prefix = prefix

    def path_for(self, fingerprint: str) -> Path:
        return self.root_dir / f"{self.prefix}{fingerprint}"

    def paths(self, scratch_dir: Path) -> ScratchPaths:
        return ScratchPaths(
            root=scratch_dir,
            request_path=scratch_dir / REQUEST_FILE,
            generator_config_path=scratch_dir / GENERATOR_CONFIG_FILE,
            stdout_path=scratch_dir / STDOUT_LOG_FILE,
            stderr_path=scratch_dir / STDERR_LOG_FILE,
        )

    def remove_stale(self, scratch_dir: Path) -> None:
        """Drop leftovers of an earlier attempt; no-op when absent."""

        if scratch_dir.exists():
            shutil.rmtree(scratch_dir)

    def create(self, scratch_dir: Path) -> ScratchPaths:
        scratch_dir.mkdir(parents=True, exist_ok=False)
        return self.paths(scratch_dir)

    def discard(self, scratch_dir: Path) -> None:
        shutil.rmtree(scratch_dir)

    def sweep(self, *, max_age_seconds: float, keep: Collection[str] = ()) -> list[Path]:
        """Remove retained scratch directories older than ``max_age_seconds``.

        ``keep`` holds fingerprints whose directories must survive (in-flight tasks).
        """

        if not self.root_dir.is_dir():
            return []
        cutoff = time.time() - max_age_seconds
        removed: list[Path] = []
        for entry in sorted(self.root_dir.iterdir()):
            if not entry.is_dir() or not entry.name.startswith(self.prefix):
                continue
            if entry.name[len(self.prefix) :] in keep:
                continue
            if entry.stat().st_mtime > cutoff:
                continue
            shutil.rmtree(entry, ignore_errors=True)
            removed.append(entry)
        if removed:
            logger.info("Pruned %d stale scratch directories in %s", len(removed), self.root_dir)
        return removed


def write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), "utf-8")
