"""Error taxonomy surfaced to scheduler callers and waiters."""

from __future__ import annotations


class ArtifactCacheError(RuntimeError):
    """Base class for scheduler errors."""


class InvalidRequestError(ArtifactCacheError):
    """Request could not be normalized or normalized to a degenerate config."""


class ExecutionError(ArtifactCacheError):
    """Generation of one task failed; shared by every waiter of that task."""

    def __init__(
        self,
        message: str,
        *,
        fingerprint: str,
        step: str,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.fingerprint = fingerprint
        self.step = step
        self.exit_code = exit_code
