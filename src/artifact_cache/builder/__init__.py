"""Build core: fingerprinting, in-flight coalescing and bounded generation.

Why not a task queue library?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
The scheduler is a single-process front for an external generator script.
What it has to guarantee is narrow: one generator run per fingerprint at any
time, at most ``N`` runs in parallel, and every waiter on a fingerprint
receiving the same outcome once the run has finished.  The generated file on
disk is the only durable state, so the in-flight table lives in memory and
is rebuilt empty on every start.
"""

from artifact_cache.builder.errors import (
    ArtifactCacheError,
    ExecutionError,
    InvalidRequestError,
)
from artifact_cache.builder.models import (
    ArtifactLocation,
    NormalizedConfig,
    TaskOutcome,
    TaskSummary,
)
from artifact_cache.builder.scheduler import BuildScheduler

__all__ = [
    "ArtifactCacheError",
    "ArtifactLocation",
    "BuildScheduler",
    "ExecutionError",
    "InvalidRequestError",
    "NormalizedConfig",
    "TaskOutcome",
    "TaskSummary",
]
