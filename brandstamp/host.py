from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import httpx

from brandstamp.models import ResolvedImage
from brandstamp.settings import UNSET, SettingsStore


class EntityMetadata(Protocol):
    def get_override(self, entity_id: Any, key: str) -> Any: ...


class AttachmentResolver(Protocol):
    def resolve(self, ref: Any, size: str) -> ResolvedImage | None: ...


class MemoryEntityMetadata:
    """Per-entity stored values, keyed by entity id then storage key."""

    def __init__(self, values: dict[Any, dict[str, Any]] | None = None) -> None:
        self._values: dict[str, dict[str, Any]] = {
            str(entity_id): dict(meta or {}) for entity_id, meta in (values or {}).items()
        }

    def get_override(self, entity_id: Any, key: str) -> Any:
        return self._values.get(str(entity_id), {}).get(key, UNSET)

    def set_override(self, entity_id: Any, key: str, value: Any) -> None:
        self._values.setdefault(str(entity_id), {})[key] = value


class MappingAttachmentResolver:
    """Resolve attachment references from a ``ref -> (url, path)`` mapping.

    Sizes are ignored; the mapping is expected to point at the already
    cropped rendition.
    """

    def __init__(self, attachments: dict[Any, Any] | None = None) -> None:
        self._attachments: dict[str, ResolvedImage] = {}
        for ref, value in (attachments or {}).items():
            image = _to_resolved_image(value)
            if image is not None:
                self._attachments[str(ref)] = image

    def resolve(self, ref: Any, size: str) -> ResolvedImage | None:  # noqa: ARG002
        return self._attachments.get(str(ref))


def _to_resolved_image(value: Any) -> ResolvedImage | None:
    if isinstance(value, ResolvedImage):
        return value
    if isinstance(value, dict):
        url = value.get("url")
        path = value.get("path")
    elif isinstance(value, (list, tuple)) and value:
        url = value[0]
        path = value[1] if len(value) > 1 else None
    else:
        url, path = value, None
    if not url:
        return None
    return ResolvedImage(url=str(url), path=Path(path) if path else None)


@dataclass(slots=True)
class HostServices:
    """The external collaborators one resolution pass reads from."""

    settings: SettingsStore
    metadata: EntityMetadata = field(default_factory=MemoryEntityMetadata)
    attachments: AttachmentResolver = field(default_factory=MappingAttachmentResolver)
    http_client: httpx.Client | None = None
