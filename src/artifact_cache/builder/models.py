"""Domain models for build tasks and their outcomes."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from artifact_cache.builder.errors import ExecutionError


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


class TaskState(str, Enum):
    """In-flight task lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class NormalizedConfig:
    """Deterministic build configuration derived from a client request."""

    name: str
    items: tuple[str, ...]
    options: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready form used for fingerprinting and the generator config file."""

        return {
            "name": self.name,
            "items": list(self.items),
            "options": dict(self.options),
        }


@dataclass(frozen=True, slots=True)
class ArtifactLocation:
    """Ready artifact: path relative to the output root plus the root itself."""

    fingerprint: str
    file: str
    directory: Path

    @property
    def path(self) -> Path:
        return self.directory / self.file


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    """Result delivered to every waiter of one fingerprint."""

    fingerprint: str
    location: ArtifactLocation | None = None
    error: ExecutionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


Waiter = Callable[[TaskOutcome], None]


@dataclass(slots=True)
class BuildTask:
    """One in-flight build, owned by the task table."""

    fingerprint: str
    request: Any
    config: NormalizedConfig
    scratch_dir: Path
    location: ArtifactLocation
    created_at: datetime = field(default_factory=utc_now)
    created_monotonic: float = 0.0
    state: TaskState = TaskState.QUEUED
    started_at: datetime | None = None
    waiters: list[Waiter] = field(default_factory=list)

    @property
    def output_path(self) -> Path:
        return self.location.path

    def summary(self, *, in_flight: int) -> TaskSummary:
        return TaskSummary(
            fingerprint=self.fingerprint,
            state=self.state,
            name=self.config.name,
            output_file=self.location.file,
            created_at=self.created_at,
            started_at=self.started_at,
            waiters=len(self.waiters),
            in_flight=in_flight,
        )


@dataclass(frozen=True, slots=True)
class TaskSummary:
    """Read-only snapshot of an in-flight task for status polling."""

    fingerprint: str
    state: TaskState
    name: str
    output_file: str
    created_at: datetime
    started_at: datetime | None
    waiters: int
    in_flight: int
