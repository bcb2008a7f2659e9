from __future__ import annotations

import math
import re
from typing import Any

from brandstamp.constants import DEFAULT_FONT_STYLE, DEFAULT_FONT_WEIGHT, FONT_STYLES, FONT_WEIGHTS

_TRUE_VALUES = {"on", "yes", "true", "1", "y"}
_SOLID_SHADOW = re.compile(r"\d+S")
_GRADIENT_SHADOW = re.compile(r"\d+G")


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).replace("\x00", " ").replace("\r", "")
    return text.strip()


def collapse_whitespace(value: Any) -> str:
    return re.sub(r"\s+", " ", clean_text(value)).strip()


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_VALUES


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(r"\s*[-+]?\d+(\.\d+)?", str(value or ""))
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def evaluate_font_weight(weight: Any, default: int = DEFAULT_FONT_WEIGHT) -> int:
    """Normalize to 100..800 in steps of 100; keywords like "bold" are translated."""
    numeric = _to_float(weight)
    if not numeric:
        numeric = FONT_WEIGHTS.get(str(weight or "").strip().lower().replace("-", "").replace(" ", ""))
    if not numeric:
        return default
    normalized = int(math.floor(numeric / 100) * 100)
    if normalized <= 0:
        return default
    return min(800, normalized)


def evaluate_font_style(style: Any, default: str = DEFAULT_FONT_STYLE) -> str:
    text = str(style or "").strip().lower()
    if text not in FONT_STYLES:
        return default
    return text


def shadow_type(shadow_left: Any, shadow_top: Any) -> str:
    """Derive the shadow type from trailing markers on the offsets: S=solid, G=gradient."""
    kind = "open"
    for value in (shadow_left, shadow_top):
        text = str(value if value is not None else "")
        if _SOLID_SHADOW.search(text):
            kind = "solid"
        if _GRADIENT_SHADOW.search(text):
            kind = "gradient"
    return kind


def to_int(value: Any, default: int = 0) -> int:
    numeric = _to_float(value)
    if numeric is None:
        return default
    return int(round(numeric))


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))
