"""Runtime configuration for the artifact build scheduler."""

from __future__ import annotations

import os
import shlex
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from artifact_cache import __version__


def _default_concurrency() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass(slots=True)
class BuilderSettings:
    """Build queue, filesystem layout and generator settings."""

    concurrency: int = field(default_factory=_default_concurrency)
    scratch_root: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "artifact-cache",
    )
    output_root: Path = Path("public/download")
    generator_command: tuple[str, ...] = ("bin/generate_artifact.sh",)
    working_dir: Path = field(default_factory=Path.cwd)
    tool_version: str = __version__
    artifact_extension: str = "zip"
    scratch_prefix: str = "artifact-"
    scratch_retention_hours: int = 24


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    builder: BuilderSettings = field(default_factory=BuilderSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        defaults = BuilderSettings()
        return cls(
            builder=BuilderSettings(
                concurrency=int(
                    os.getenv("ARTIFACT_CACHE_CONCURRENCY", str(defaults.concurrency)),
                ),
                scratch_root=_env_path("ARTIFACT_CACHE_SCRATCH_ROOT", defaults.scratch_root),
                output_root=_env_path("ARTIFACT_CACHE_OUTPUT_ROOT", defaults.output_root),
                generator_command=_env_command(
                    "ARTIFACT_CACHE_GENERATOR",
                    defaults.generator_command,
                ),
                working_dir=_env_path("ARTIFACT_CACHE_WORKING_DIR", defaults.working_dir),
                tool_version=os.getenv("ARTIFACT_CACHE_TOOL_VERSION", defaults.tool_version),
                artifact_extension=os.getenv(
                    "ARTIFACT_CACHE_ARTIFACT_EXTENSION",
                    defaults.artifact_extension,
                ),
                scratch_prefix=os.getenv("ARTIFACT_CACHE_SCRATCH_PREFIX", defaults.scratch_prefix),
                scratch_retention_hours=int(
                    os.getenv(
                        "ARTIFACT_CACHE_SCRATCH_RETENTION_HOURS",
                        str(defaults.scratch_retention_hours),
                    ),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if builder settings cannot work."""

        builder = self.builder
        if builder.concurrency <= 0:
            raise ValueError("ARTIFACT_CACHE_CONCURRENCY must be a positive integer.")
        if not builder.generator_command or not builder.generator_command[0].strip():
            raise ValueError("ARTIFACT_CACHE_GENERATOR must name a generator executable.")
        if not builder.tool_version.strip():
            raise ValueError("ARTIFACT_CACHE_TOOL_VERSION must not be empty.")
        extension = builder.artifact_extension
        if not extension or extension.startswith(".") or "/" in extension or "\\" in extension:
            raise ValueError(
                "Invalid ARTIFACT_CACHE_ARTIFACT_EXTENSION: "
                f"{extension!r}. Expected a bare extension such as 'zip'.",
            )
        if "/" in builder.scratch_prefix or "\\" in builder.scratch_prefix:
            raise ValueError("ARTIFACT_CACHE_SCRATCH_PREFIX must not contain path separators.")
        if builder.scratch_retention_hours < 0:
            raise ValueError("ARTIFACT_CACHE_SCRATCH_RETENTION_HOURS must be >= 0.")


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    return Path(value) if value else default


def _env_command(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        parts = shlex.split(raw)
    except ValueError as error:
        raise ValueError(f"Invalid {name} value: {raw!r} ({error})") from error
    return tuple(parts)
