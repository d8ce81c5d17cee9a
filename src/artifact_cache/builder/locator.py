"""Sharded output paths and the cache existence probe."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from artifact_cache.builder.models import ArtifactLocation


def output_name(fingerprint: str, extension: str) -> str:
    """Relative artifact path: ``xx/yy/<fingerprint>.<ext>``."""

    return str(PurePosixPath(fingerprint[:2], fingerprint[2:4], f"{fingerprint}.{extension}"))


class OutputLocator:
    """Maps fingerprints to artifact files under one output root."""

    def __init__(self, root_dir: Path, *, extension: str = "zip") -> None:
        self.root_dir = root_dir
        self.extension = extension

    def relative(self, fingerprint: str) -> str:
        return output_name(fingerprint, self.extension)

    def path(self, fingerprint: str) -> Path:
        return self.root_dir / self.relative(fingerprint)

    def locate(self, fingerprint: str) -> ArtifactLocation:
        return ArtifactLocation(
            fingerprint=fingerprint,
            file=self.relative(fingerprint),
            directory=self.root_dir,
        )

    def exists(self, fingerprint: str) -> bool:
        """Check the final artifact path only; scratch directories are never probed.

        Callers must rule out an in-flight task for the fingerprint first.
        """

        return self.path(fingerprint).is_file()
