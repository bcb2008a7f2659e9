from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from brandstamp.constants import (
    ARCHIVE_ID,
    BASE_CONTENT_ITEM,
    BASE_TAXONOMY_TERM,
    BASE_UNSUPPORTED,
    NEW_ID,
)


@dataclass(frozen=True, slots=True)
class EntityRef:
    id: str | int | None
    type: str
    base_type: str = BASE_UNSUPPORTED

    @property
    def is_archive(self) -> bool:
        return self.id == ARCHIVE_ID

    @property
    def is_new(self) -> bool:
        return self.id == NEW_ID

    @property
    def is_supported(self) -> bool:
        return bool(self.id) and self.base_type in {BASE_CONTENT_ITEM, BASE_TAXONOMY_TERM}

    @property
    def is_content_item(self) -> bool:
        return self.base_type == BASE_CONTENT_ITEM


@dataclass(slots=True)
class EntityDetails:
    title: str = ""
    permalink: str | None = None
    thumbnail: str | int | None = None


@dataclass(slots=True)
class HostContext:
    blogname: str = ""
    active_plugins: frozenset[str] = frozenset()
    title_tokens: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ResolvedImage:
    url: str
    path: Path | None = None


@dataclass(slots=True)
class ChainResult:
    value: Any = None
    winner: str | None = None
    layers: dict[str, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.winner is not None


@dataclass(slots=True)
class TextOptions:
    color: str
    background_color: str
    background_enabled: bool
    position: str
    valign: str
    halign: str
    top: int | None
    right: int | None
    bottom: int | None
    left: int | None
    font_file: str
    font_weight: int
    font_style: str
    font_size: int
    line_height: float
    shadow_color: str
    shadow_top: str | int
    shadow_left: str | int
    shadow_type: str
    stroke: int | None = None
    stroke_color: str | None = None


@dataclass(slots=True)
class LogoOptions:
    enabled: bool
    file: str | None
    position: str
    valign: str | None = None
    halign: str | None = None
    top: int | None = None
    right: int | None = None
    bottom: int | None = None
    left: int | None = None
    w: float | None = None
    h: float | None = None
    size: str | None = None
    source_width: int | None = None
    source_height: int | None = None
    source_aspect_ratio: float | None = None


@dataclass(slots=True)
class RenderConfig:
    image_source: str | None
    image_url: str | None
    text: str
    text_options: TextOptions
    logo_options: LogoOptions
    image_layer: str | None = None
    text_layer: str | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def has_image(self) -> bool:
        return self.image_source is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_source": self.image_source,
            "image_url": self.image_url,
            "text": self.text,
            "text_options": asdict(self.text_options),
            "logo_options": asdict(self.logo_options),
            "image_layer": self.image_layer,
            "text_layer": self.text_layer,
            "errors": dict(self.errors),
        }


@dataclass(frozen=True, slots=True)
class RewriteRule:
    pattern: str
    target: str


@dataclass(frozen=True, slots=True)
class Taxonomy:
    name: str
    slug: str
    with_front: bool = True
    public: bool = True
    builtin: bool = False


@dataclass(frozen=True, slots=True)
class RouteMatch:
    index: int | None
    rule: str | None
    target: str
    has_query_var: bool
