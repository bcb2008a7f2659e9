from __future__ import annotations

import re
from typing import Any

from brandstamp.constants import DEFAULT_OUTPUT_FORMAT, DEFAULT_TITLE_FORMAT, IMAGE_NAME, OUTPUT_FORMATS


def resolve_output_format(fmt: Any, fallback: str = DEFAULT_OUTPUT_FORMAT) -> str:
    """Accept ``"png"``, ``"jpg"``/``"jpeg"`` or a ``(preferred, fallback)`` pair."""
    if isinstance(fmt, (list, tuple)) and fmt:
        fallback = str(fmt[1]).lower() if len(fmt) > 1 else fallback
        fmt = fmt[0]
    if fallback not in OUTPUT_FORMATS:
        fallback = DEFAULT_OUTPUT_FORMAT
    value = str(fmt or "").strip().lower()
    if value == "jpeg":
        value = "jpg"
    if value not in OUTPUT_FORMATS:
        return fallback
    return value


def output_filename(fmt: Any = DEFAULT_OUTPUT_FORMAT) -> str:
    return f"{IMAGE_NAME}.{resolve_output_format(fmt)}"


def og_image_url(link: str | None, endpoint: str) -> str | None:
    """Public image URL for an entity whose canonical link is ``link``."""
    if not link:
        return None
    if not link.endswith("/"):
        link += "/"
    return f"{link}{endpoint}/"


def format_title(
    title_format: str | None,
    *,
    title: str,
    blogname: str,
    extra_tokens: dict[str, str] | None = None,
    no_title: bool = False,
) -> str:
    """Substitute ``{title}``, ``{blogname}`` and registered tokens in one pass.

    With ``no_title`` the ``{title}`` token is left in place, which is what an
    unsaved draft shows.
    """
    fmt = title_format if title_format else DEFAULT_TITLE_FORMAT
    tokens: dict[str, str] = {
        "{title}": "{title}" if no_title else (title or ""),
        "{blogname}": blogname or "",
    }
    for key, value in (extra_tokens or {}).items():
        token = key if key.startswith("{") else f"{{{key}}}"
        tokens[token] = "" if value is None else str(value)

    # longest token first, like a translation table
    pattern = re.compile("|".join(re.escape(token) for token in sorted(tokens, key=len, reverse=True)))
    return pattern.sub(lambda match: tokens[match.group(0)], fmt)
