"""In-memory registry of in-flight build tasks."""

from __future__ import annotations

from collections.abc import Iterator

from artifact_cache.builder.models import BuildTask


class TaskTable:
    """Fingerprint -> task mapping holding at most one task per fingerprint.

    Not synchronized: the scheduler serializes every call under its own lock.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, BuildTask] = {}

    def register(self, task: BuildTask) -> None:
        if task.fingerprint in self._tasks:
            raise KeyError(f"Task already registered: {task.fingerprint}")
        self._tasks[task.fingerprint] = task

    def lookup(self, fingerprint: str) -> BuildTask | None:
        return self._tasks.get(fingerprint)

    def remove(self, fingerprint: str) -> BuildTask:
        try:
            return self._tasks.pop(fingerprint)
        except KeyError:
            raise KeyError(f"Task is not registered: {fingerprint}") from None

    def fingerprints(self) -> frozenset[str]:
        return frozenset(self._tasks)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[BuildTask]:
        return iter(list(self._tasks.values()))
