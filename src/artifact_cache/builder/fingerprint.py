"""Stable identifiers for normalized build configurations."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from artifact_cache.builder.errors import InvalidRequestError
from artifact_cache.builder.models import NormalizedConfig

FINGERPRINT_NAMESPACE = "artifact-cache"
FINGERPRINT_LENGTH = 64

_FINGERPRINT_RE = re.compile(rf"[0-9a-f]{{{FINGERPRINT_LENGTH}}}")


def canonical_json(payload: Any) -> str:
    """Serialize payload with sorted keys and compact separators."""

    try:
        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as error:
        raise InvalidRequestError(f"Build config is not serializable: {error}") from error


def compute_fingerprint(tool_version: str, config: NormalizedConfig) -> str:
    """Digest of the tool version tag and the canonical normalized config.

    Bumping ``tool_version`` changes every fingerprint, which invalidates all
    previously generated artifacts.
    """

    digest = hashlib.sha256()
    digest.update(f"{FINGERPRINT_NAMESPACE}{tool_version}".encode())
    digest.update(canonical_json(config.to_payload()).encode("utf-8"))
    return digest.hexdigest()


def is_fingerprint(value: object) -> bool:
    return isinstance(value, str) and _FINGERPRINT_RE.fullmatch(value) is not None
