import copy
from typing import Any

from brandstamp.config import DEFAULT_CONFIG
from brandstamp.fallback import ResolutionContext
from brandstamp.host import MappingAttachmentResolver, MemoryEntityMetadata
from brandstamp.models import EntityDetails, EntityRef, HostContext
from brandstamp.resolver import entity_image_url, is_enabled_for, resolve_render_config
from brandstamp.settings import MemorySettingsStore

POST = EntityRef(id=7, type="post", base_type="content-item")
DETAILS = EntityDetails(title="Hello", permalink="https://example.test/hello/")
HOST = HostContext(blogname="Site")
ATTACHMENTS = MappingAttachmentResolver({"A": ["https://cdn.example.test/a.jpg", "/srv/uploads/a.jpg"]})


def _config(**overrides: Any) -> dict[str, Any]:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["scrape_titles"] = False
    cfg.update(overrides)
    return cfg


def test_resolve_render_config_bundle() -> None:
    result = resolve_render_config(
        POST,
        DETAILS,
        HOST,
        settings=MemorySettingsStore({"_bs_default_image": "A"}),
        attachments=ATTACHMENTS,
        config=_config(),
    )
    assert result.has_image
    assert result.image_source == "/srv/uploads/a.jpg"
    assert result.image_url == "https://cdn.example.test/a.jpg"
    assert result.image_layer == "settings"
    assert result.text == "Hello - Site"
    assert result.text_layer == "by-format"
    assert result.text_options.position == "bottom-left"
    assert result.logo_options.enabled is False

    payload = result.to_dict()
    assert payload["text_options"]["color"] == "#FFFFFFFF"
    assert set(payload) >= {"image_source", "text", "text_options", "logo_options", "errors"}


def test_entity_text_override_and_text_switch() -> None:
    settings = MemorySettingsStore({"_bs_default_image": "A"})
    metadata = MemoryEntityMetadata({7: {"_bs_text": "Custom"}})
    result = resolve_render_config(
        POST, DETAILS, HOST, settings=settings, metadata=metadata, attachments=ATTACHMENTS, config=_config()
    )
    assert (result.text, result.text_layer) == ("Custom", "meta")

    metadata = MemoryEntityMetadata({7: {"_bs_text": "Custom", "_bs_text_enabled": "off"}})
    result = resolve_render_config(
        POST, DETAILS, HOST, settings=settings, metadata=metadata, attachments=ATTACHMENTS, config=_config()
    )
    assert (result.text, result.text_layer) == ("", None)


def test_no_image_available() -> None:
    result = resolve_render_config(POST, DETAILS, HOST, settings=MemorySettingsStore(), config=_config())
    assert not result.has_image
    assert result.image_layer is None
    assert result.text == "Hello - Site"


def test_configuration_errors_are_reported() -> None:
    settings = MemorySettingsStore({"_bs_default_color": "#12345", "_bs_image_logo": "/nowhere/logo.png"})
    result = resolve_render_config(POST, DETAILS, HOST, settings=settings, config=_config())
    assert result.text_options.color == "#FFFFFFFF"
    assert "color" in result.errors
    assert "logo" in result.errors


def test_is_enabled_for() -> None:
    settings = MemorySettingsStore({"_bs_default_image": "A"})
    assert is_enabled_for(POST, DETAILS, HOST, settings=settings, attachments=ATTACHMENTS)
    assert not is_enabled_for(POST, DETAILS, HOST, settings=MemorySettingsStore(), attachments=ATTACHMENTS)

    disabled = MemorySettingsStore({"_bs_default_image": "A", "_bs_default_disabled": "on"})
    assert not is_enabled_for(POST, DETAILS, HOST, settings=disabled, attachments=ATTACHMENTS)

    unsupported = EntityRef(id=3, type="attachment", base_type="unsupported")
    assert not is_enabled_for(unsupported, DETAILS, HOST, settings=settings, attachments=ATTACHMENTS)


def test_shared_context_does_not_leak_between_entities() -> None:
    other = EntityRef(id=8, type="post", base_type="content-item")
    settings = MemorySettingsStore()
    metadata = MemoryEntityMetadata({7: {"_bs_image": "https://x.test/a.jpg"}, 8: {"_bs_image": "https://x.test/b.jpg"}})
    context = ResolutionContext()
    assert is_enabled_for(POST, DETAILS, HOST, settings=settings, metadata=metadata, context=context)
    result = resolve_render_config(
        other, DETAILS, HOST, settings=settings, metadata=metadata, config=_config(), context=context
    )
    assert result.image_url == "https://x.test/b.jpg"
    assert result.image_layer == "meta"


def test_entity_image_url() -> None:
    assert entity_image_url(POST, DETAILS) == "https://example.test/hello/social-image.jpg/"
    assert entity_image_url(POST, DETAILS, _config(output_format="png")) == "https://example.test/hello/social-image.png/"
    assert entity_image_url(EntityRef(id="new", type="post", base_type="content-item"), DETAILS) is None
