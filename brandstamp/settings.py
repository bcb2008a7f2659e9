"""Key-value settings stores.

A stored empty string and a key that was never stored are different things:
``get`` returns ``UNSET`` (or the caller's default) only for the latter.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml

from brandstamp.errors import SettingsError

LOGGER = logging.getLogger(__name__)


class _Unset:
    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_unset(value: Any) -> bool:
    return value is UNSET


class SettingsStore(Protocol):
    def get(self, key: str, default: Any = UNSET) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemorySettingsStore:
    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = UNSET) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


def _load_mapping(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"cannot read settings file {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as exc:
        raise SettingsError(f"settings file is not valid: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"settings file is not a dict: {path}")
    return {str(key): value for key, value in data.items()}


class YamlSettingsStore(MemorySettingsStore):
    """Settings kept in a YAML (or JSON) file, written back on every ``set``."""

    def __init__(self, path: Path, autosave: bool = True) -> None:
        self.path = path
        self.autosave = autosave
        values = _load_mapping(path) if path.exists() else {}
        super().__init__(values)
        LOGGER.debug("loaded %d settings from %s", len(values), path)

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        if self.autosave:
            self.save()

    def delete(self, key: str) -> None:
        super().delete(key)
        if self.autosave:
            self.save()

    def save(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump(self.as_dict(), sort_keys=True, allow_unicode=True),
            encoding="utf-8",
        )
        return self.path


def load_mapping_file(path: Path) -> dict[str, Any]:
    return _load_mapping(path)
