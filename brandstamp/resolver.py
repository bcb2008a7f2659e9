"""Entity to render-config pipeline.

``resolve_render_config`` runs the image and text fallback chains, then the
option cascade, and returns everything the drawing side needs together
with the winning layer names and any recorded configuration errors.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import httpx

from brandstamp.cascade import ConfigCascade
from brandstamp.config import DEFAULT_CONFIG
from brandstamp.constants import IMAGE_SIZE_NAME
from brandstamp.fallback import ResolutionContext, is_image_available, resolve_image_chain, resolve_text_chain
from brandstamp.host import (
    AttachmentResolver,
    EntityMetadata,
    HostServices,
    MappingAttachmentResolver,
    MemoryEntityMetadata,
)
from brandstamp.models import EntityDetails, EntityRef, HostContext, RenderConfig
from brandstamp.naming import og_image_url, output_filename
from brandstamp.settings import SettingsStore

LOGGER = logging.getLogger(__name__)


def _services(
    settings: SettingsStore,
    metadata: EntityMetadata | None,
    attachments: AttachmentResolver | None,
    http_client: httpx.Client | None,
) -> HostServices:
    return HostServices(
        settings=settings,
        metadata=metadata if metadata is not None else MemoryEntityMetadata(),
        attachments=attachments if attachments is not None else MappingAttachmentResolver(),
        http_client=http_client,
    )


def _image_size(cfg: dict[str, Any]) -> str:
    return str(cfg.get("image_size_name") or IMAGE_SIZE_NAME)


def resolve_render_config(
    entity: EntityRef,
    details: EntityDetails | None = None,
    host: HostContext | None = None,
    *,
    settings: SettingsStore,
    metadata: EntityMetadata | None = None,
    attachments: AttachmentResolver | None = None,
    http_client: httpx.Client | None = None,
    config: dict[str, Any] | None = None,
    context: ResolutionContext | None = None,
) -> RenderConfig:
    cfg = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
    details = details or EntityDetails()
    host = host or HostContext()
    context = context or ResolutionContext()
    services = _services(settings, metadata, attachments, http_client)
    cascade = ConfigCascade(services, cfg, errors=context.errors)

    image = resolve_image_chain(context, entity, details, host, services, with_entity=True, size=_image_size(cfg))
    image_source = image_url = None
    if image.found:
        image_url = image.value.url
        image_source = str(image.value.path) if image.value.path else image.value.url

    text = ""
    text_layer = None
    override = cascade.entity_text(entity)
    if not cascade.text_enabled(entity):
        LOGGER.debug("text disabled for %s", entity)
    elif override is not None:
        text, text_layer = override, "meta"
    else:
        chain = resolve_text_chain(context, entity, details, host, services, cfg)
        if chain.found:
            text, text_layer = chain.value, chain.winner

    config_bundle = RenderConfig(
        image_source=image_source,
        image_url=image_url,
        text=text,
        text_options=cascade.text_options(entity),
        logo_options=cascade.logo_options(entity),
        image_layer=image.winner,
        text_layer=text_layer,
        errors=context.errors.as_dict(),
    )
    LOGGER.debug("resolved %s: image from %s, text from %s", entity, image.winner, text_layer)
    return config_bundle


def is_enabled_for(
    entity: EntityRef,
    details: EntityDetails | None = None,
    host: HostContext | None = None,
    *,
    settings: SettingsStore,
    metadata: EntityMetadata | None = None,
    attachments: AttachmentResolver | None = None,
    config: dict[str, Any] | None = None,
    context: ResolutionContext | None = None,
) -> bool:
    """Whether a branded image should be served for ``entity``.

    Needs a supported entity, the kill switch off and some image to draw on.
    """
    if not entity.is_supported:
        return False
    cfg = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
    context = context or ResolutionContext()
    services = _services(settings, metadata, attachments, None)
    if ConfigCascade(services, cfg, errors=context.errors).is_disabled(entity):
        LOGGER.debug("branded image disabled for %s", entity)
        return False
    return is_image_available(
        context,
        entity,
        details or EntityDetails(),
        host or HostContext(),
        services,
        size=_image_size(cfg),
    )


def entity_image_url(entity: EntityRef, details: EntityDetails, config: dict[str, Any] | None = None) -> str | None:
    """Public URL of the branded image, or None for entities without one."""
    if not entity.is_supported or entity.is_new:
        return None
    cfg = config or DEFAULT_CONFIG
    return og_image_url(details.permalink, output_filename(cfg.get("output_format")))
