"""Backend interface for external artifact generation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class GeneratorRunRequest:
    """Inputs required to run the generator once."""

    name: str
    scratch_dir: Path
    output_path: Path
    working_dir: Path
    stdout_path: Path
    stderr_path: Path


@dataclass(slots=True)
class GeneratorRunResult:
    """Execution outcome from the generator process."""

    exit_code: int
    elapsed_seconds: float
    stdout_path: Path
    stderr_path: Path


class GeneratorBackend(Protocol):
    """Protocol implemented by generator runners."""

    def run(self, request: GeneratorRunRequest) -> GeneratorRunResult:
        """Run the generator to completion and return execution metadata."""
