"""Three-tier option resolution: entity override, site setting, literal default.

An entity override is consulted only when its key is in the entity
allow-list (the ``meta`` option group after feature filtering). Site
settings come from the ``admin`` group. Problems in stored values are
recorded on the ``ErrorLog`` under a short tag and replaced by the option's
default; they never abort the resolution.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from brandstamp.config import Features, canvas_size, get_font_storage
from brandstamp.constants import (
    DEF_FONT_SIZE,
    DEFAULT_FONT,
    DEFAULT_FONT_STYLE,
    DEFAULT_FONT_WEIGHT,
    LINE_HEIGHT_FACTOR,
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
    NO_SHADOW_COLOR,
    OPTION_PREFIX,
    SIMPLE_SHADOW_COLOR,
    SIMPLE_SHADOW_LEFT,
    SIMPLE_SHADOW_TOP,
)
from brandstamp.errors import ErrorLog, LogoError, OptionError
from brandstamp.host import HostServices
from brandstamp.models import EntityRef, LogoOptions, TextOptions
from brandstamp.normalize import (
    clamp,
    clean_text,
    evaluate_font_style,
    evaluate_font_weight,
    parse_flag,
    shadow_type,
    to_int,
)
from brandstamp.options import ADMIN, META, OptionDef, entity_override, field_list, site_value
from brandstamp.render.color import normalize_hex
from brandstamp.render.geometry import (
    Placement,
    probe_image_size,
    resolve_logo_box,
    resolve_position,
    resolve_symbolic_position,
)
from brandstamp.render.typography import resolve_font_file
from brandstamp.settings import UNSET, is_unset

LOGGER = logging.getLogger(__name__)

_LOGO_SIZE = "full"


def _font_traits(font: str) -> tuple[str, int, str]:
    """Split ``Family-BoldItalic`` into family, weight and style."""
    stem = Path(font).stem
    family, _, variant = stem.partition("-")
    variant = variant.lower()
    style = DEFAULT_FONT_STYLE
    if variant.endswith("italic"):
        style = "italic"
        variant = variant[: -len("italic")]
    weight = evaluate_font_weight(variant or DEFAULT_FONT_WEIGHT)
    return family, weight, evaluate_font_style(style)


class ConfigCascade:
    def __init__(
        self,
        services: HostServices,
        cfg: dict[str, Any] | None = None,
        *,
        errors: ErrorLog | None = None,
        features: Features | None = None,
    ) -> None:
        self.services = services
        self.cfg = cfg or {}
        self.errors = errors if errors is not None else ErrorLog()
        self.features = features or Features.from_config(self.cfg)
        self.fields = field_list(self.features)
        self.allowed = frozenset(self.fields[META])
        self.canvas = canvas_size(self.cfg)

    def _takes_overrides(self, entity: EntityRef | None) -> bool:
        return entity is not None and entity.is_supported and not entity.is_archive

    def override(self, entity: EntityRef | None, key: str) -> Any:
        option = self.fields[META].get(key)
        if option is None or not self._takes_overrides(entity):
            return UNSET
        return entity_override(self.services.metadata, entity.id, option, self.allowed)

    def value(self, entity: EntityRef | None, key: str) -> Any:
        """Resolve ``key`` through the entity, site and literal-default tiers."""
        override = self.override(entity, key)
        if not is_unset(override):
            return override
        admin_option = self.fields[ADMIN].get(key)
        if admin_option is not None:
            return site_value(self.services.settings, admin_option)
        meta_option = self.fields[META].get(key)
        if meta_option is not None:
            return meta_option.default
        return None

    def _default(self, key: str) -> Any:
        option: OptionDef | None = self.fields[ADMIN].get(key) or self.fields[META].get(key)
        return None if option is None else option.default

    def color(self, entity: EntityRef | None, key: str, tag: str) -> str:
        raw = self.value(entity, key)
        default = normalize_hex(self._default(key)) or NO_SHADOW_COLOR
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return default
        normalized = normalize_hex(str(raw))
        if normalized is None:
            self.errors.set(tag, f"invalid color {raw!r} for {key}, using {default}")
            return default
        return normalized

    def placement(self, entity: EntityRef | None, key: str, tag: str) -> tuple[str, Placement]:
        raw = self.value(entity, key)
        keyword = str(raw or "").strip().lower()
        try:
            offsets = resolve_symbolic_position(keyword)
        except OptionError as exc:
            keyword = str(self._default(key))
            self.errors.set(tag, f"{exc}, using {keyword}")
            offsets = resolve_symbolic_position(keyword)
        keyword = keyword or "left"
        width, height = self.canvas
        return keyword, resolve_position(offsets.top, offsets.right, offsets.bottom, offsets.left, width, height)

    def is_disabled(self, entity: EntityRef | None) -> bool:
        """The kill switch: an entity value wins when stored, else the site value."""
        stored = self.override(entity, "disabled")
        if is_unset(stored) or not stored:
            stored = site_value(self.services.settings, self.fields[ADMIN]["disabled"])
        return str(stored).strip().lower() == "on" or stored is True

    def text_enabled(self, entity: EntityRef | None) -> bool:
        stored = self.override(entity, "text_enabled")
        if is_unset(stored):
            return True
        return parse_flag(stored)

    def entity_text(self, entity: EntityRef | None) -> str | None:
        stored = self.override(entity, "text")
        if is_unset(stored):
            return None
        return clean_text(stored) or None

    def logo_enabled(self, entity: EntityRef | None) -> bool:
        """Logos are on unless an allow-listed entity value explicitly turns them off.

        A stored ``yes`` always enables, even when the key is not allow-listed.
        """
        if not self._takes_overrides(entity):
            return True
        stored = self.services.metadata.get_override(entity.id, f"{OPTION_PREFIX}logo_enabled")
        if isinstance(stored, str) and stored.strip().lower() == "yes":
            return True
        if "logo_enabled" in self.allowed and not is_unset(stored) and stored is not None:
            return parse_flag(stored)
        return True

    def _shadow(self, entity: EntityRef | None) -> tuple[str, Any, Any]:
        mode = self.features.shadow
        if mode == "on":
            color = self.color(entity, "text_shadow_color", "shadow_color")
            left = self.value(entity, "text_shadow_left")
            top = self.value(entity, "text_shadow_top")
        elif mode == "simple":
            enabled = parse_flag(self.value(entity, "text_shadow_enabled"))
            color = SIMPLE_SHADOW_COLOR if enabled else NO_SHADOW_COLOR
            left, top = SIMPLE_SHADOW_LEFT, SIMPLE_SHADOW_TOP
        else:
            color, left, top = NO_SHADOW_COLOR, SIMPLE_SHADOW_LEFT, SIMPLE_SHADOW_TOP

        # an entity can always switch on the simple shadow when allowed to
        if mode != "simple" and parse_flag(self.override(entity, "text_shadow_enabled")):
            color, left, top = SIMPLE_SHADOW_COLOR, SIMPLE_SHADOW_LEFT, SIMPLE_SHADOW_TOP
        return color, left, top

    def _font(self) -> tuple[str, int, str]:
        font = str(self.value(None, "text__font") or DEFAULT_FONT).strip()
        family, weight, style = _font_traits(font)
        storage = get_font_storage(self.cfg)

        uploaded = self.value(None, "text__ttf_upload")
        candidates = [str(uploaded)] if uploaded else []
        candidates.append(font)
        resolution = None
        for candidate in candidates:
            resolution = resolve_font_file(
                candidate,
                storage,
                font_family=f"google:{family}" if family else None,
                font_weight=weight,
                font_style=style,
            )
            if resolution.found:
                break
        if resolution is None or not resolution.found:
            self.errors.set("font", resolution.error if resolution else f"font not available: {font}")
        font_file = str(resolution.path) if resolution and resolution.path else font
        return font_file, weight, style

    def text_options(self, entity: EntityRef | None) -> TextOptions:
        position, placement = self.placement(entity, "text_position", "text_position")
        font_file, font_weight, font_style = self._font()
        font_size = clamp(to_int(self.value(None, "text__font_size"), DEF_FONT_SIZE), MIN_FONT_SIZE, MAX_FONT_SIZE)
        shadow_color, shadow_left, shadow_top = self._shadow(entity)

        stroke = stroke_color = None
        if self.features.stroke == "on":
            stroke = max(0, to_int(self.value(entity, "text_stroke"), 0))
            stroke_color = self.color(entity, "text_stroke_color", "stroke_color")

        return TextOptions(
            color=self.color(entity, "color", "color"),
            background_color=self.color(entity, "background_color", "background_color"),
            background_enabled=parse_flag(self.value(entity, "background_enabled")),
            position=position,
            valign=placement.valign,
            halign=placement.halign,
            top=placement.top,
            right=placement.right,
            bottom=placement.bottom,
            left=placement.left,
            font_file=font_file,
            font_weight=font_weight,
            font_style=font_style,
            font_size=font_size,
            line_height=font_size * LINE_HEIGHT_FACTOR,
            shadow_color=shadow_color,
            shadow_top=shadow_top,
            shadow_left=shadow_left,
            shadow_type=shadow_type(shadow_left, shadow_top),
            stroke=stroke,
            stroke_color=stroke_color,
        )

    def _logo_file(self) -> str | None:
        ref = self.value(None, "image_logo")
        if not ref:
            return None
        if isinstance(ref, int) or (isinstance(ref, str) and ref.strip().isdigit()):
            image = self.services.attachments.resolve(ref, _LOGO_SIZE)
            if image is None or image.path is None:
                raise LogoError(f"logo attachment {ref!r} has no file")
            return str(image.path)
        return str(ref).strip()

    def logo_options(self, entity: EntityRef | None) -> LogoOptions:
        position, placement = self.placement(entity, "logo_position", "logo_position")
        logo = LogoOptions(
            enabled=self.logo_enabled(entity),
            file=None,
            position=position,
            valign=placement.valign,
            halign=placement.halign,
            top=placement.top,
            right=placement.right,
            bottom=placement.bottom,
            left=placement.left,
        )
        try:
            logo.file = self._logo_file()
            if logo.file is None:
                logo.enabled = False
                return logo
            source_w, source_h = probe_image_size(logo.file)
            box = resolve_logo_box(source_w, source_h, self.value(None, "image_logo_size"))
        except LogoError as exc:
            self.errors.set("logo", str(exc))
            logo.enabled = False
            logo.file = None
            return logo

        logo.source_width = source_w
        logo.source_height = source_h
        logo.source_aspect_ratio = source_w / source_h
        logo.w = box.w
        logo.h = box.h
        logo.size = f"{box.scale_percent}%"
        return logo
