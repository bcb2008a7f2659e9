"""The closed schema of overridable rendering options.

Options come in two groups. ``admin`` options are site-wide and live in the
settings store; ``meta`` options are per-entity overrides read through the
entity metadata provider. Membership of the ``meta`` group is the
per-entity allow-list: a stored override for a key outside it is ignored.
Feature flags remove keys from both groups.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from brandstamp.config import Features
from brandstamp.constants import (
    DEF_FONT_SIZE,
    DEFAULT_FONT,
    DEFAULT_TEXT,
    DEFAULT_TITLE_FORMAT,
    DEFAULTS_PREFIX,
    DO_NOT_RENDER,
    INTERNAL_KEYS,
    MAX_FONT_SIZE,
    MAX_LOGO_SCALE,
    MIN_FONT_SIZE,
    MIN_LOGO_SCALE,
    NO_SHADOW_COLOR,
    OPTION_PREFIX,
    POSITION_GRID,
)
from brandstamp.errors import OptionError
from brandstamp.render.color import normalize_hex
from brandstamp.settings import UNSET, SettingsStore, is_unset

if TYPE_CHECKING:
    from brandstamp.host import EntityMetadata

ADMIN = "admin"
META = "meta"


class OptionType(Enum):
    CHECKBOX = "checkbox"
    SELECT = "select"
    COLOR = "color"
    TEXT = "text"
    SLIDER = "slider"
    RADIO = "radio"
    IMAGE = "image"
    FILE = "file"


@dataclass(frozen=True, slots=True)
class OptionDef:
    key: str
    namespace: str
    type: OptionType
    default: Any = None
    choices: tuple[str, ...] = field(default_factory=tuple)
    minimum: int | None = None
    maximum: int | None = None
    label: str = ""

    @property
    def storage_key(self) -> str:
        return f"{self.namespace}{self.key}"

    @property
    def is_boolean(self) -> bool:
        return self.type is OptionType.CHECKBOX

    def validate(self, value: Any) -> bool:
        if value is None or value == "":
            return True
        if self.type in (OptionType.SELECT, OptionType.RADIO) and self.choices:
            return str(value) in self.choices
        if self.type is OptionType.COLOR:
            return normalize_hex(str(value)) is not None
        if self.type is OptionType.SLIDER:
            try:
                float(value)
            except (TypeError, ValueError):
                return False
            return True
        if self.type in (OptionType.IMAGE, OptionType.FILE):
            return isinstance(value, (str, int))
        return isinstance(value, (str, int, float, bool))


_POSITIONS = tuple(POSITION_GRID)

_ADMIN_OPTIONS: tuple[OptionDef, ...] = (
    OptionDef("disabled", DEFAULTS_PREFIX, OptionType.CHECKBOX, "off", label="Disable branded images by default"),
    OptionDef("image", DEFAULTS_PREFIX, OptionType.IMAGE, label="Fallback image"),
    OptionDef("image_use_thumbnail", OPTION_PREFIX, OptionType.CHECKBOX, "on", label="Use the featured image"),
    OptionDef("image_logo", OPTION_PREFIX, OptionType.IMAGE, label="Logo"),
    OptionDef("logo_position", DEFAULTS_PREFIX, OptionType.RADIO, "top-left", _POSITIONS, label="Default logo position"),
    OptionDef(
        "image_logo_size",
        OPTION_PREFIX,
        OptionType.SLIDER,
        100,
        minimum=MIN_LOGO_SCALE,
        maximum=MAX_LOGO_SCALE,
        label="Logo scale (%)",
    ),
    OptionDef("text", DEFAULTS_PREFIX, OptionType.TEXT, DEFAULT_TEXT, label="Fallback text"),
    OptionDef("title_format", OPTION_PREFIX, OptionType.TEXT, DEFAULT_TITLE_FORMAT, label="Title format"),
    OptionDef("text__font", DEFAULTS_PREFIX, OptionType.SELECT, DEFAULT_FONT, label="Font"),
    OptionDef("text__ttf_upload", DEFAULTS_PREFIX, OptionType.FILE, label="Font upload"),
    OptionDef("text_position", DEFAULTS_PREFIX, OptionType.RADIO, "bottom-left", _POSITIONS, label="Text position"),
    OptionDef("color", DEFAULTS_PREFIX, OptionType.COLOR, "#FFFFFFFF", label="Text color"),
    OptionDef(
        "text__font_size",
        OPTION_PREFIX,
        OptionType.SLIDER,
        DEF_FONT_SIZE,
        minimum=MIN_FONT_SIZE,
        maximum=MAX_FONT_SIZE,
        label="Font size",
    ),
    OptionDef("background_color", DEFAULTS_PREFIX, OptionType.COLOR, "#66666666", label="Text background color"),
    OptionDef("background_enabled", DEFAULTS_PREFIX, OptionType.CHECKBOX, "on", label="Use text background"),
    OptionDef("text_stroke_color", DEFAULTS_PREFIX, OptionType.COLOR, "#00000000", label="Stroke color"),
    OptionDef("text_stroke", DEFAULTS_PREFIX, OptionType.TEXT, 0, label="Stroke width"),
    OptionDef("text_shadow_color", DEFAULTS_PREFIX, OptionType.COLOR, NO_SHADOW_COLOR, label="Text shadow color"),
    OptionDef("text_shadow_top", DEFAULTS_PREFIX, OptionType.TEXT, "-2", label="Shadow offset, vertical"),
    OptionDef("text_shadow_left", DEFAULTS_PREFIX, OptionType.TEXT, "2", label="Shadow offset, horizontal"),
    OptionDef("text_shadow_enabled", DEFAULTS_PREFIX, OptionType.CHECKBOX, "off", label="Use a text shadow"),
)

_META_OPTIONS: tuple[OptionDef, ...] = (
    OptionDef("disabled", OPTION_PREFIX, OptionType.CHECKBOX, label="Disable for this entity"),
    OptionDef("text_enabled", OPTION_PREFIX, OptionType.CHECKBOX, "yes", label="Display text on this image"),
    OptionDef("image", OPTION_PREFIX, OptionType.IMAGE, label="Entity image"),
    OptionDef("text", OPTION_PREFIX, OptionType.TEXT, label="Text on image"),
    OptionDef("color", OPTION_PREFIX, OptionType.COLOR, label="Text color"),
    OptionDef("text_position", OPTION_PREFIX, OptionType.RADIO, choices=_POSITIONS, label="Text position"),
    OptionDef("background_color", OPTION_PREFIX, OptionType.COLOR, label="Text background color"),
    OptionDef("text_stroke_color", OPTION_PREFIX, OptionType.COLOR, label="Stroke color"),
    OptionDef("text_stroke", OPTION_PREFIX, OptionType.TEXT, label="Stroke width"),
    OptionDef("text_shadow_color", OPTION_PREFIX, OptionType.COLOR, label="Text shadow color"),
    OptionDef("text_shadow_top", OPTION_PREFIX, OptionType.TEXT, label="Shadow offset, vertical"),
    OptionDef("text_shadow_left", OPTION_PREFIX, OptionType.TEXT, label="Shadow offset, horizontal"),
    OptionDef("text_shadow_enabled", OPTION_PREFIX, OptionType.CHECKBOX, label="Use a text shadow"),
    OptionDef("logo_enabled", OPTION_PREFIX, OptionType.CHECKBOX, "yes", label="Use a logo on this image"),
    OptionDef("logo_position", OPTION_PREFIX, OptionType.RADIO, choices=_POSITIONS, label="Logo position"),
    OptionDef("image_logo", DO_NOT_RENDER, OptionType.IMAGE, label="Logo"),
)

_STROKE_KEYS = {"text_stroke", "text_stroke_color"}
_META_LOGO_KEYS = {"logo_position", "logo_enabled"}
_META_TEXT_KEYS = {"color", "text_position", "background_color", "text_shadow_enabled"}
_SHADOW_DETAIL_KEYS = {"text_shadow_color", "text_shadow_top", "text_shadow_left"}


def _removed_keys(group: str, features: Features) -> set[str]:
    removed: set[str] = set()
    if features.stroke != "on":
        removed |= _STROKE_KEYS
    if group == META and features.meta_logo_options != "on":
        removed |= _META_LOGO_KEYS
    if group == META and features.meta_text_options != "on":
        removed |= _META_TEXT_KEYS
    if features.shadow != "on":
        removed |= _SHADOW_DETAIL_KEYS
    if group == ADMIN and features.shadow != "simple":
        removed.add("text_shadow_enabled")
    return removed


def field_list(features: Features | None = None) -> dict[str, dict[str, OptionDef]]:
    features = features or Features()
    groups = {ADMIN: _ADMIN_OPTIONS, META: _META_OPTIONS}
    result: dict[str, dict[str, OptionDef]] = {}
    for group, options in groups.items():
        removed = _removed_keys(group, features)
        result[group] = {option.key: option for option in options if option.key not in removed}
    return result


def allowed_keys(group: str, features: Features | None = None) -> frozenset[str]:
    fields = field_list(features)
    if group not in fields:
        raise OptionError(f"unknown option group: {group}")
    return frozenset(fields[group])


def get_option(group: str, key: str, features: Features | None = None) -> OptionDef:
    fields = field_list(features)
    try:
        return fields[group][key]
    except KeyError as exc:
        raise OptionError(f"option {key!r} is not available in group {group!r}") from exc


def validate_settings(values: Mapping[str, Any], features: Features | None = None) -> dict[str, Any]:
    """Check stored site settings against the admin schema.

    Keys outside this package's prefixes are left alone. Unknown prefixed
    keys and values outside an option's domain raise ``OptionError``.
    """
    by_storage_key = {option.storage_key: option for option in field_list(features)[ADMIN].values()}
    problems: list[str] = []
    accepted: dict[str, Any] = {}
    for key, value in values.items():
        if not key.startswith(OPTION_PREFIX) or key in INTERNAL_KEYS:
            continue
        option = by_storage_key.get(key)
        if option is None:
            problems.append(f"unknown setting: {key}")
            continue
        if not option.validate(value):
            problems.append(f"invalid value for {key}: {value!r}")
            continue
        accepted[key] = value
    if problems:
        raise OptionError("; ".join(problems))
    return accepted


def _is_blank(value: Any) -> bool:
    return is_unset(value) or value is None or (isinstance(value, str) and value.strip() == "")


def stored_site_value(store: SettingsStore, option: OptionDef) -> Any:
    return store.get(option.storage_key, UNSET)


def site_value(store: SettingsStore, option: OptionDef) -> Any:
    """Stored site value, or the option's literal default when nothing usable is stored.

    An explicitly stored empty value counts for checkbox options only.
    """
    value = stored_site_value(store, option)
    if option.is_boolean and not is_unset(value) and value is not None:
        return value
    if _is_blank(value):
        return option.default
    return value


def entity_override(
    metadata: EntityMetadata,
    entity_id: Any,
    option: OptionDef,
    allowed: frozenset[str],
) -> Any:
    """Stored per-entity override, or ``UNSET`` when absent or not allow-listed."""
    if option.key not in allowed or option.namespace == DO_NOT_RENDER:
        return UNSET
    value = metadata.get_override(entity_id, f"{OPTION_PREFIX}{option.key}")
    if option.is_boolean:
        return UNSET if is_unset(value) or value is None else value
    if _is_blank(value):
        return UNSET
    return value
