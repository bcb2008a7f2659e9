from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from pathlib import Path

from PIL import ImageFont

LOGGER = logging.getLogger(__name__)

_FONT_FILE_SUFFIXES = (".ttf", ".otf")


@dataclass(frozen=True, slots=True)
class FontResolution:
    path: Path | None
    found: bool
    error: str | None = None


def _system_font_candidates() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        return [
            Path(r"C:\Windows\Fonts\arialbd.ttf"),
            Path(r"C:\Windows\Fonts\arial.ttf"),
            Path(r"C:\Windows\Fonts\segoeui.ttf"),
        ]
    if "darwin" in system:
        return [
            Path("/Library/Fonts/Arial Bold.ttf"),
            Path("/System/Library/Fonts/Supplemental/Arial Bold.ttf"),
            Path("/Library/Fonts/Arial Unicode.ttf"),
        ]
    return [
        Path("/usr/share/fonts/truetype/roboto/unhinted/RobotoTTF/Roboto-Bold.ttf"),
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    ]


def font_filename(font_family: str, font_weight: int, font_style: str) -> str:
    """Storage filename for a ``google:<Family>`` font reference, else ''."""
    if not font_family.startswith("google:"):
        return ""
    name = font_family.split(":", 1)[1].strip()
    if not name:
        return ""
    suffix = "-italic" if font_style == "italic" else ""
    return f"{name}-w{font_weight}{suffix}.ttf"


def _candidate_files(font: str, storage: Path | None) -> list[Path]:
    path = Path(font)
    if path.is_absolute() or path.parent != Path("."):
        candidates = [path]
    elif storage is None:
        return []
    else:
        candidates = [storage / font]
    expanded: list[Path] = []
    for candidate in candidates:
        expanded.append(candidate)
        if candidate.suffix.lower() not in _FONT_FILE_SUFFIXES:
            expanded.extend(candidate.with_name(candidate.name + suffix) for suffix in _FONT_FILE_SUFFIXES)
    return expanded


def is_usable_font(path: Path) -> bool:
    if not path.is_file() or path.suffix.lower() not in _FONT_FILE_SUFFIXES:
        return False
    try:
        ImageFont.truetype(str(path), size=12)
    except OSError as exc:
        LOGGER.debug("font probe failed for %s: %s", path, exc)
        return False
    return True


def resolve_font_file(
    font: str | None,
    storage: Path | None,
    *,
    font_family: str | None = None,
    font_weight: int = 400,
    font_style: str = "normal",
) -> FontResolution:
    """Find a TrueType/OpenType file for a font reference.

    A bare name is looked up in ``storage`` with and without a .ttf/.otf
    suffix. When nothing matches, the storage filename derived from
    ``font_family`` is tried, then the first usable system font is returned
    with ``found=False``.
    """
    names = [font] if font else []
    if font_family:
        derived = font_filename(font_family, font_weight, font_style)
        if derived:
            names.append(derived)

    for name in names:
        for candidate in _candidate_files(name, storage):
            if is_usable_font(candidate):
                return FontResolution(path=candidate, found=True)

    error = f"font not available: {font or font_family or '(none)'}"
    for candidate in _system_font_candidates():
        if is_usable_font(candidate):
            LOGGER.debug("using system font %s instead of %s", candidate, font)
            return FontResolution(path=candidate, found=False, error=error)
    return FontResolution(path=None, found=False, error=error)
