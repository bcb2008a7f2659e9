from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

from brandstamp.constants import MAX_LOGO_SCALE, MIN_LOGO_SCALE, PADDING, POSITION_GRID
from brandstamp.errors import LogoError, OptionError

LOGGER = logging.getLogger(__name__)

_TOP_KEYWORDS = {"top-left", "top", "top-right"}
_BOTTOM_KEYWORDS = {"bottom-left", "bottom", "bottom-right"}
_MIDDLE_KEYWORDS = {"left", "center", "right"}
_LEFT_KEYWORDS = {"top-left", "bottom-left", "left"}
_RIGHT_KEYWORDS = {"top-right", "bottom-right", "right"}
_CENTER_KEYWORDS = {"top", "center", "bottom"}


@dataclass(frozen=True, slots=True)
class EdgeOffsets:
    top: int | str | None = None
    right: int | str | None = None
    bottom: int | str | None = None
    left: int | str | None = None


@dataclass(frozen=True, slots=True)
class Placement:
    top: int | None
    right: int | None
    bottom: int | None
    left: int | None
    valign: str
    halign: str


@dataclass(frozen=True, slots=True)
class LogoBox:
    w: float
    h: float
    scale_percent: int


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        return text in {"", "0", "null"}
    return value == 0


def _resolve_offset(value: Any, extent: int, rounding) -> int | None:
    if _is_empty(value):
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            try:
                percent = float(text[:-1])
            except ValueError:
                return None
            return max(0, int(rounding(percent / 100 * extent)))
        try:
            return max(0, int(float(text)))
        except ValueError:
            return None
    return max(0, int(value))


def resolve_position(
    top: Any,
    right: Any,
    bottom: Any,
    left: Any,
    canvas_w: int,
    canvas_h: int,
) -> Placement:
    """Turn edge offsets into pixels and derive the alignment.

    Percentages resolve against the canvas height for top/bottom and the
    canvas width for left/right. Top and left round down, bottom and right
    round up, so two opposite offsets never leave a one-pixel gap.
    """
    top_px = _resolve_offset(top, canvas_h, math.floor)
    bottom_px = _resolve_offset(bottom, canvas_h, math.ceil)
    left_px = _resolve_offset(left, canvas_w, math.floor)
    right_px = _resolve_offset(right, canvas_w, math.ceil)

    if top_px is not None and bottom_px is not None:
        valign = "center"
    elif top_px is not None:
        valign = "top"
    else:
        valign = "bottom"
    if left_px is not None and right_px is not None:
        halign = "center"
    elif left_px is not None:
        halign = "left"
    else:
        halign = "right"

    return Placement(top=top_px, right=right_px, bottom=bottom_px, left=left_px, valign=valign, halign=halign)


def resolve_symbolic_position(keyword: str | None, padding: int = PADDING) -> EdgeOffsets:
    position = (keyword or "").strip().lower() or "left"
    if position not in POSITION_GRID:
        raise OptionError(f"unknown position: {keyword!r}")

    top = bottom = left = right = None
    if position in _TOP_KEYWORDS:
        top = padding
    elif position in _BOTTOM_KEYWORDS:
        bottom = padding
    elif position in _MIDDLE_KEYWORDS:
        top = bottom = padding

    if position in _LEFT_KEYWORDS:
        left = padding
    elif position in _RIGHT_KEYWORDS:
        right = padding
    elif position in _CENTER_KEYWORDS:
        left = right = padding

    return EdgeOffsets(top=top, right=right, bottom=bottom, left=left)


def clamp_logo_scale(scale_percent: Any, min_scale: int = MIN_LOGO_SCALE, max_scale: int = MAX_LOGO_SCALE) -> int:
    try:
        scale = int(float(scale_percent))
    except (TypeError, ValueError):
        scale = 100
    return max(min_scale, min(max_scale, scale))


def resolve_logo_box(
    source_w: int,
    source_h: int,
    scale_percent: Any,
    min_scale: int = MIN_LOGO_SCALE,
    max_scale: int = MAX_LOGO_SCALE,
) -> LogoBox:
    if not source_w or not source_h or source_w < 0 or source_h < 0:
        raise LogoError(f"logo has no usable size: {source_w}x{source_h}")
    scale = clamp_logo_scale(scale_percent, min_scale, max_scale)
    # w/h start as the bounding box.
    box_w = scale / 100 * source_w
    box_h = scale / 100 * source_h
    fit = min(box_w / source_w, box_h / source_h)
    return LogoBox(w=source_w * fit, h=source_h * fit, scale_percent=scale)


def probe_image_size(path: Path | str | None) -> tuple[int, int]:
    if not path:
        raise LogoError("no logo file configured")
    source = Path(path)
    if not source.is_file():
        raise LogoError(f"logo file does not exist: {source}")
    try:
        with Image.open(source) as image:
            width, height = image.size
    except (OSError, UnidentifiedImageError) as exc:
        LOGGER.debug("image probe failed for %s: %s", source, exc)
        raise LogoError(f"not an image: {source}") from exc
    if not width or not height:
        raise LogoError(f"image has a zero dimension: {source}")
    return width, height
