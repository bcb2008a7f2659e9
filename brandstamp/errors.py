"""Exceptions and the per-tag log of recoverable configuration errors.

Configuration problems (a malformed color, an unreadable logo, an unknown
font) never abort a resolution. The resolver substitutes a default and
records a message under a short tag; callers show the collected messages in
an administrative diagnostics view.
"""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class BrandstampError(Exception):
    """Base exception for this package."""


class OptionError(BrandstampError, ValueError):
    """Unknown option key or a value outside the option's allowed set."""


class LogoError(BrandstampError, ValueError):
    """Logo source is missing, unreadable, or has a zero dimension."""


class SettingsError(BrandstampError):
    """Settings file cannot be read or does not hold a mapping."""


class ErrorLog:
    def __init__(self) -> None:
        self._errors: dict[str, str] = {}

    def set(self, tag: str, message: str | None) -> None:
        if not message:
            self._errors.pop(tag, None)
            return
        LOGGER.warning("%s: %s", tag, message)
        self._errors[tag] = message

    def clear(self, tag: str) -> None:
        self._errors.pop(tag, None)

    def get(self, tag: str) -> str | None:
        return self._errors.get(tag)

    def as_dict(self) -> dict[str, str]:
        return dict(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __contains__(self, tag: object) -> bool:
        return tag in self._errors
