"""Hex color strings to RGBA channels and back.

Two alpha conventions are in use. ``WEB`` alpha runs 0-255 with 255 opaque,
as in CSS ``#RRGGBBAA``. ``RASTER`` alpha runs 0-127 with 0 opaque, as used
by palette-style raster drawing libraries.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import NamedTuple

_HEX_RE = re.compile(r"^#([0-9a-fA-F]+)$")


class AlphaConvention(Enum):
    WEB = "web"
    RASTER = "raster"


class ColorValue(NamedTuple):
    r: int
    g: int
    b: int
    a: int


def to_raster_alpha(web_alpha: int) -> int:
    web_alpha = max(0, min(255, int(web_alpha)))
    raster = round((255 - web_alpha) / 255 * 127)
    return max(0, min(127, raster))


def to_web_alpha(raster_alpha: int) -> int:
    raster_alpha = max(0, min(127, int(raster_alpha)))
    web = 255 - math.floor(raster_alpha / 127 * 255)
    return max(0, min(255, web))


def _expand(digits: str) -> str | None:
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 6:
        digits += "ff"
    if len(digits) != 8:
        return None
    return digits


def decode(hex_color: str | None, convention: AlphaConvention = AlphaConvention.WEB) -> ColorValue | None:
    """Parse ``#RGB``, ``#RGBA``, ``#RRGGBB`` or ``#RRGGBBAA``.

    Returns None for anything else, including the seven-digit form.
    """
    if not isinstance(hex_color, str):
        return None
    match = _HEX_RE.match(hex_color.strip())
    if not match:
        return None
    digits = _expand(match.group(1))
    if digits is None:
        return None
    r, g, b, a = (int(digits[i : i + 2], 16) for i in range(0, 8, 2))
    if convention is AlphaConvention.RASTER:
        a = to_raster_alpha(a)
    return ColorValue(r, g, b, a)


def encode(color: ColorValue | tuple[int, int, int, int], convention: AlphaConvention = AlphaConvention.WEB) -> str:
    r, g, b, a = (int(channel) for channel in color)
    if convention is AlphaConvention.RASTER:
        a = to_web_alpha(a)
    channels = [max(0, min(255, value)) for value in (r, g, b, a)]
    return "#" + "".join(f"{value:02X}" for value in channels)


def normalize_hex(hex_color: str | None) -> str | None:
    """Return the canonical ``#RRGGBBAA`` form, or None when malformed."""
    color = decode(hex_color)
    if color is None:
        return None
    return encode(color)
