"""Generator backend implementations."""

from artifact_cache.builder.backend.base import (
    GeneratorBackend,
    GeneratorRunRequest,
    GeneratorRunResult,
)
from artifact_cache.builder.backend.cli_backend import CliGeneratorBackend, GeneratorRunError

__all__ = [
    "CliGeneratorBackend",
    "GeneratorBackend",
    "GeneratorRunError",
    "GeneratorRunRequest",
    "GeneratorRunResult",
]
