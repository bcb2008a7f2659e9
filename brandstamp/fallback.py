"""Layered fallback resolution for the source image and the overlay text.

A chain is an ordered list of named layers, each a zero-argument callable.
Layers are evaluated lazily in priority order and the first non-empty value
wins; the winning layer's name is kept for diagnostics. A layer that fails
(network error, missing file, broken attachment) simply yields nothing.

All memoization lives on a ``ResolutionContext`` owned by the caller, so a
cache never outlives one resolution pass or leaks between requests.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx
from bs4 import BeautifulSoup

from brandstamp.constants import (
    IMAGE_SIZE_NAME,
    OPTION_PREFIX,
    RANKMATH_IMAGE_META,
    SEO_PLUGIN_RANKMATH,
    SEO_PLUGIN_YOAST,
    YOAST_IMAGE_META,
)
from brandstamp.errors import ErrorLog
from brandstamp.host import HostServices
from brandstamp.models import ChainResult, EntityDetails, EntityRef, HostContext, ResolvedImage
from brandstamp.naming import format_title
from brandstamp.normalize import clean_text, collapse_whitespace, parse_flag
from brandstamp.options import ADMIN, field_list, site_value
from brandstamp.settings import is_unset

LOGGER = logging.getLogger(__name__)

Layer = tuple[str, Callable[[], Any]]

_DIRECT_URL = re.compile(r"^(https?:)?//|^/", re.IGNORECASE)
_HEAD_END = re.compile(r"</head>", re.IGNORECASE)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; brandstamp)"
DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class ScrapeResult:
    status: int
    title: str


@dataclass(slots=True)
class ResolutionContext:
    """Request-scoped state for one resolution pass."""

    errors: ErrorLog = field(default_factory=ErrorLog)
    scrape_cache: dict[str, ScrapeResult] = field(default_factory=dict)
    image_chains: dict[tuple[EntityRef, bool], ChainResult] = field(default_factory=dict)
    text_chains: dict[EntityRef, ChainResult] = field(default_factory=dict)

    def reset(self) -> None:
        self.scrape_cache.clear()
        self.image_chains.clear()
        self.text_chains.clear()


class FallbackChain:
    def __init__(self, layers: Iterable[Layer]) -> None:
        self.layers: list[Layer] = list(layers)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.layers]

    def resolve(self) -> ChainResult:
        result = ChainResult()
        for name, produce in self.layers:
            try:
                value = produce()
            except Exception as exc:
                LOGGER.debug("layer %s failed: %s", name, exc)
                value = None
            if isinstance(value, str):
                value = value if value.strip() else None
            result.layers[name] = value or None
            if value:
                LOGGER.debug("layer %s wins", name)
                result.value = value
                result.winner = name
                break
        return result


def _is_direct_url(ref: Any) -> bool:
    return isinstance(ref, str) and bool(_DIRECT_URL.match(ref.strip()))


def resolve_image_ref(ref: Any, services: HostServices, size: str = IMAGE_SIZE_NAME) -> ResolvedImage | None:
    """Turn an attachment reference or a direct URL into a concrete image.

    Resolution failures demote the layer to empty.
    """
    if is_unset(ref) or ref is None or ref == "" or ref == 0:
        return None
    if _is_direct_url(ref):
        return ResolvedImage(url=str(ref).strip())
    try:
        image = services.attachments.resolve(ref, size)
    except Exception as exc:
        LOGGER.debug("attachment %r could not be resolved: %s", ref, exc)
        return None
    if image is None or not image.url:
        LOGGER.debug("attachment %r has no %s rendition", ref, size)
        return None
    return image


def build_image_chain(
    entity: EntityRef,
    details: EntityDetails,
    host: HostContext,
    services: HostServices,
    *,
    with_entity: bool = False,
    size: str = IMAGE_SIZE_NAME,
) -> FallbackChain:
    if not entity.is_supported:
        return FallbackChain([])

    admin = field_list()[ADMIN]
    stacked: list[Layer] = [
        ("settings", lambda: resolve_image_ref(site_value(services.settings, admin["image"]), services, size)),
    ]
    if entity.is_content_item:
        if parse_flag(site_value(services.settings, admin["image_use_thumbnail"])):
            stacked.append(("thumbnail", lambda: resolve_image_ref(details.thumbnail, services, size)))
        if SEO_PLUGIN_YOAST in host.active_plugins:
            stacked.append(
                ("yoast", lambda: resolve_image_ref(services.metadata.get_override(entity.id, YOAST_IMAGE_META), services, size))
            )
        if SEO_PLUGIN_RANKMATH in host.active_plugins:
            stacked.append(
                (
                    "rankmath",
                    lambda: resolve_image_ref(services.metadata.get_override(entity.id, RANKMATH_IMAGE_META), services, size),
                )
            )
    if with_entity:
        stacked.append(
            ("meta", lambda: resolve_image_ref(services.metadata.get_override(entity.id, f"{OPTION_PREFIX}image"), services, size))
        )
    # later layers override earlier ones
    return FallbackChain(reversed(stacked))


def resolve_image_chain(
    context: ResolutionContext,
    entity: EntityRef,
    details: EntityDetails,
    host: HostContext,
    services: HostServices,
    *,
    with_entity: bool = False,
    size: str = IMAGE_SIZE_NAME,
) -> ChainResult:
    key = (entity, with_entity)
    cached = context.image_chains.get(key)
    if cached is not None:
        return cached
    result = build_image_chain(entity, details, host, services, with_entity=with_entity, size=size).resolve()
    if not result.found:
        LOGGER.debug("no image available for %s", entity)
    context.image_chains[key] = result
    return result


def is_image_available(
    context: ResolutionContext,
    entity: EntityRef,
    details: EntityDetails,
    host: HostContext,
    services: HostServices,
    *,
    size: str = IMAGE_SIZE_NAME,
) -> bool:
    return resolve_image_chain(context, entity, details, host, services, with_entity=True, size=size).found


def _title_from_head(html: str) -> str:
    head = _HEAD_END.split(html, maxsplit=1)[0]
    soup = BeautifulSoup(head, "html.parser")
    for attrs in ({"property": "og:title"}, {"name": "og:title"}):
        tag = soup.find("meta", attrs=attrs)
        if tag is not None and tag.get("content"):
            title = collapse_whitespace(tag.get("content"))
            if title:
                return title
    if soup.title is not None:
        return collapse_whitespace(soup.title.get_text())
    return ""


def scrape_title(
    url: str,
    client: httpx.Client | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    headers: dict[str, str] | None = None,
) -> ScrapeResult:
    """Fetch ``url`` and pull the og:title (or <title>) from its head.

    Network failures yield status 0 and an empty title.
    """
    request_headers = {"User-Agent": user_agent}
    request_headers.update(headers or {})
    try:
        if client is None:
            with httpx.Client(timeout=timeout, follow_redirects=True) as own_client:
                response = own_client.get(url, headers=request_headers)
        else:
            response = client.get(url, headers=request_headers, timeout=timeout)
    except httpx.HTTPError as exc:
        LOGGER.debug("title scrape of %s failed: %s", url, exc)
        return ScrapeResult(status=0, title="")

    if response.status_code != 200:
        LOGGER.debug("title scrape of %s returned %s", url, response.status_code)
        return ScrapeResult(status=response.status_code, title="")
    return ScrapeResult(status=200, title=_title_from_head(response.text))


def _scrape_cached(context: ResolutionContext, url: str, services: HostServices, cfg: dict[str, Any]) -> str:
    cached = context.scrape_cache.get(url)
    if cached is None:
        http_cfg = cfg.get("http") or {}
        cached = scrape_title(
            url,
            services.http_client,
            timeout=float(http_cfg.get("timeout") or DEFAULT_TIMEOUT),
            user_agent=str(http_cfg.get("user_agent") or DEFAULT_USER_AGENT),
        )
        context.scrape_cache[url] = cached
    return cached.title


def build_text_chain(
    context: ResolutionContext,
    entity: EntityRef,
    details: EntityDetails,
    host: HostContext,
    services: HostServices,
    cfg: dict[str, Any] | None = None,
) -> FallbackChain:
    cfg = cfg or {}
    if not entity.id:
        return FallbackChain([])

    admin = field_list()[ADMIN]
    layers: list[Layer] = []
    if parse_flag(cfg.get("use_bare_title")) and not entity.is_new:
        layers.append(("platform", lambda: clean_text(details.title)))
    if parse_flag(cfg.get("scrape_titles", True)) and details.permalink:
        permalink = details.permalink
        layers.append(("scraped", lambda: _scrape_cached(context, permalink, services, cfg)))
    layers.append(
        (
            "by-format",
            lambda: format_title(
                site_value(services.settings, admin["title_format"]),
                title=clean_text(details.title),
                blogname=host.blogname,
                extra_tokens=host.title_tokens,
                no_title=entity.is_new,
            ),
        )
    )
    layers.append(("default", lambda: clean_text(site_value(services.settings, admin["text"]))))
    return FallbackChain(layers)


def resolve_text_chain(
    context: ResolutionContext,
    entity: EntityRef,
    details: EntityDetails,
    host: HostContext,
    services: HostServices,
    cfg: dict[str, Any] | None = None,
) -> ChainResult:
    cached = context.text_chains.get(entity)
    if cached is None:
        cached = build_text_chain(context, entity, details, host, services, cfg).resolve()
        context.text_chains[entity] = cached
    return cached
