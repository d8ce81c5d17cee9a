"""Request normalization seam and the default selection normalizer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from artifact_cache.builder.errors import InvalidRequestError
from artifact_cache.builder.models import NormalizedConfig


class RequestNormalizer(Protocol):
    """Protocol implemented by request normalizers.

    Equal requests in meaning must normalize to equal configs, otherwise
    identical builds get different fingerprints and are generated twice.
    """

    def normalize(self, request: Any) -> NormalizedConfig:
        """Return a deterministic build config or raise ``InvalidRequestError``."""


class SelectionNormalizer:
    """Normalize ``{"name": ..., <items_field>: [...], "options": {...}}`` requests.

    Items are deduplicated and sorted, so selection order does not affect the
    fingerprint.
    """

    def __init__(self, *, items_field: str = "items", default_name: str = "artifact") -> None:
        self.items_field = items_field
        self.default_name = default_name

    def normalize(self, request: Any) -> NormalizedConfig:
        if not isinstance(request, Mapping):
            raise InvalidRequestError(
                f"Request must be a mapping, got {type(request).__name__}.",
            )

        name = request.get("name", self.default_name)
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequestError("Request name must be a non-empty string.")

        raw_items = request.get(self.items_field)
        if not isinstance(raw_items, list | tuple):
            raise InvalidRequestError(f"Request field {self.items_field!r} must be a list.")
        items: set[str] = set()
        for item in raw_items:
            if not isinstance(item, str) or not item:
                raise InvalidRequestError(
                    f"Invalid entry in {self.items_field!r}: {item!r}",
                )
            items.add(item)

        options = request.get("options", {})
        if not isinstance(options, Mapping):
            raise InvalidRequestError("Request options must be a mapping.")

        return NormalizedConfig(
            name=name.strip(),
            items=tuple(sorted(items)),
            options=dict(options),
        )
