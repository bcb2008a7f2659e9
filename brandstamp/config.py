from __future__ import annotations

import copy
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from brandstamp.constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    DEFAULT_OUTPUT_FORMAT,
    IMAGE_SIZE_NAME,
)

DEFAULT_CONFIG: dict[str, Any] = {
    "features": {
        "stroke": "off",
        "shadow": "simple",
        "meta_text_options": "off",
        "meta_logo_options": "off",
    },
    "output_format": DEFAULT_OUTPUT_FORMAT,
    "canvas": {"width": CANVAS_WIDTH, "height": CANVAS_HEIGHT},
    "image_size_name": IMAGE_SIZE_NAME,
    "font_storage": None,
    "settings_file": None,
    "http": {
        "timeout": 5.0,
        "user_agent": "Mozilla/5.0 (compatible; brandstamp)",
    },
    "scrape_titles": True,
    "use_bare_title": False,
}

_FEATURE_VALUES: dict[str, tuple[str, ...]] = {
    "stroke": ("off", "on"),
    "shadow": ("off", "simple", "on"),
    "meta_text_options": ("off", "on"),
    "meta_logo_options": ("off", "on"),
}


@dataclass(frozen=True, slots=True)
class Features:
    stroke: str = "off"
    shadow: str = "simple"
    meta_text_options: str = "off"
    meta_logo_options: str = "off"

    @classmethod
    def from_config(cls, cfg: dict[str, Any] | None) -> "Features":
        raw = (cfg or {}).get("features") or {}
        defaults = DEFAULT_CONFIG["features"]
        values: dict[str, str] = {}
        for name, allowed in _FEATURE_VALUES.items():
            value = str(raw.get(name, defaults[name])).strip().lower()
            values[name] = value if value in allowed else defaults[name]
        return cls(**values)


def get_user_data_dir() -> Path:
    """Return a user-writable data directory for config, settings and fonts."""
    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "Brandstamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "Brandstamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "Brandstamp"
    return Path.home() / ".config" / "Brandstamp"


def get_config_path() -> Path:
    return get_user_data_dir() / "Config" / "config.yaml"


def get_settings_path(cfg: dict[str, Any]) -> Path:
    configured = cfg.get("settings_file")
    if configured:
        return Path(configured).expanduser()
    return get_user_data_dir() / "Config" / "settings.yaml"


def get_font_storage(cfg: dict[str, Any]) -> Path:
    configured = cfg.get("font_storage")
    if configured:
        return Path(configured).expanduser()
    return get_user_data_dir() / "fonts"


def canvas_size(cfg: dict[str, Any]) -> tuple[int, int]:
    canvas = cfg.get("canvas") or {}
    width = int(canvas.get("width") or CANVAS_WIDTH)
    height = int(canvas.get("height") or CANVAS_HEIGHT)
    return max(1, width), max(1, height)


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    return _deep_merge(DEFAULT_CONFIG, loaded)


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path
