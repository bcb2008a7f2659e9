from typing import Any

import httpx

from brandstamp.fallback import (
    FallbackChain,
    ResolutionContext,
    build_text_chain,
    resolve_image_chain,
    resolve_text_chain,
    scrape_title,
)
from brandstamp.host import HostServices, MappingAttachmentResolver, MemoryEntityMetadata
from brandstamp.models import EntityDetails, EntityRef, HostContext
from brandstamp.settings import MemorySettingsStore

POST = EntityRef(id=7, type="post", base_type="content-item")
NO_SCRAPE = {"scrape_titles": False}
ATTACHMENTS = {
    "A": "https://cdn.example.test/a.jpg",
    "B": "https://cdn.example.test/b.jpg",
    "C": ["https://cdn.example.test/c.jpg", "/srv/uploads/c.jpg"],
}


def _services(
    settings: dict[str, Any] | None = None,
    meta: dict[str, Any] | None = None,
    http_client: httpx.Client | None = None,
) -> HostServices:
    return HostServices(
        settings=MemorySettingsStore(settings),
        metadata=MemoryEntityMetadata({7: meta or {}}),
        attachments=MappingAttachmentResolver(ATTACHMENTS),
        http_client=http_client,
    )


def _html_client(html: str, calls: list[str], status: int = 200) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(status, text=html)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_image_chain_last_non_empty_layer_wins() -> None:
    services = _services(settings={"_bs_default_image": "A"}, meta={"_yoast_wpseo_opengraph-image-id": "B"})
    host = HostContext(active_plugins=frozenset({"yoast"}))
    result = resolve_image_chain(ResolutionContext(), POST, EntityDetails(thumbnail=""), host, services)
    assert result.found
    assert result.winner == "yoast"
    assert result.value.url == "https://cdn.example.test/b.jpg"


def test_image_chain_all_empty_means_no_image() -> None:
    result = resolve_image_chain(ResolutionContext(), POST, EntityDetails(), HostContext(), _services())
    assert not result.found
    assert result.value is None


def test_image_chain_demotes_unresolvable_attachments() -> None:
    services = _services(settings={"_bs_default_image": "A"}, meta={"rank_math_facebook_image_id": "broken"})
    host = HostContext(active_plugins=frozenset({"rankmath"}))
    result = resolve_image_chain(ResolutionContext(), POST, EntityDetails(), host, services)
    assert result.winner == "settings"
    assert result.layers["rankmath"] is None


def test_image_chain_entity_layer_and_direct_urls() -> None:
    services = _services(settings={"_bs_default_image": "A"}, meta={"_bs_image": "C"})
    details = EntityDetails(thumbnail="https://example.test/thumb.jpg")

    result = resolve_image_chain(ResolutionContext(), POST, details, HostContext(), services)
    assert result.winner == "thumbnail"
    assert result.value.url == "https://example.test/thumb.jpg"

    result = resolve_image_chain(ResolutionContext(), POST, details, HostContext(), services, with_entity=True)
    assert result.winner == "meta"
    assert str(result.value.path) == "/srv/uploads/c.jpg"


def test_thumbnail_layer_can_be_switched_off() -> None:
    services = _services(settings={"_bs_default_image": "A", "_bs_image_use_thumbnail": "off"})
    details = EntityDetails(thumbnail="https://example.test/thumb.jpg")
    result = resolve_image_chain(ResolutionContext(), POST, details, HostContext(), services)
    assert result.winner == "settings"
    assert "thumbnail" not in result.layers


def test_unsupported_entities_have_no_layers() -> None:
    entity = EntityRef(id=3, type="attachment", base_type="unsupported")
    services = _services(settings={"_bs_default_image": "A"})
    result = resolve_image_chain(ResolutionContext(), entity, EntityDetails(), HostContext(), services)
    assert not result.found
    assert result.layers == {}


def test_chain_results_are_memoized_until_reset() -> None:
    services = _services(settings={"_bs_default_image": "A"})
    context = ResolutionContext()
    first = resolve_image_chain(context, POST, EntityDetails(), HostContext(), services)
    assert resolve_image_chain(context, POST, EntityDetails(), HostContext(), services) is first
    context.reset()
    assert resolve_image_chain(context, POST, EntityDetails(), HostContext(), services) is not first


def test_memoized_chains_are_kept_per_entity() -> None:
    other = EntityRef(id=8, type="post", base_type="content-item")
    services = HostServices(
        settings=MemorySettingsStore(),
        metadata=MemoryEntityMetadata({7: {"_bs_image": "A"}, 8: {"_bs_image": "B"}}),
        attachments=MappingAttachmentResolver(ATTACHMENTS),
    )
    context = ResolutionContext()
    first = resolve_image_chain(context, POST, EntityDetails(), HostContext(), services, with_entity=True)
    second = resolve_image_chain(context, other, EntityDetails(), HostContext(), services, with_entity=True)
    assert first.value.url == "https://cdn.example.test/a.jpg"
    assert second.value.url == "https://cdn.example.test/b.jpg"

    host = HostContext(blogname="Site")
    seven = resolve_text_chain(context, POST, EntityDetails(title="Seven"), host, services, NO_SCRAPE)
    eight = resolve_text_chain(context, other, EntityDetails(title="Eight"), host, services, NO_SCRAPE)
    assert seven.value == "Seven - Site"
    assert eight.value == "Eight - Site"


def test_failing_layer_counts_as_empty() -> None:
    def broken() -> str:
        raise OSError("disk on fire")

    result = FallbackChain([("broken", broken), ("blank", lambda: "  "), ("ok", lambda: "x")]).resolve()
    assert result.value == "x"
    assert result.winner == "ok"
    assert result.layers == {"broken": None, "blank": None, "ok": "x"}


def test_text_chain_builds_title_from_format() -> None:
    details = EntityDetails(title="Hello", permalink="https://example.test/hello/")
    host = HostContext(blogname="Site")
    services = _services(settings={"_bs_title_format": "{title} - {blogname}"})
    result = resolve_text_chain(ResolutionContext(), POST, details, host, services, NO_SCRAPE)
    assert result.value == "Hello - Site"
    assert result.winner == "by-format"


def test_text_chain_for_unsaved_draft_and_bare_title() -> None:
    draft = EntityRef(id="new", type="post", base_type="content-item")
    services = _services()
    host = HostContext(blogname="Site")
    result = resolve_text_chain(ResolutionContext(), draft, EntityDetails(title="Draft"), host, services, NO_SCRAPE)
    assert result.value == "{title} - Site"

    cfg = {"scrape_titles": False, "use_bare_title": True}
    result = resolve_text_chain(ResolutionContext(), POST, EntityDetails(title="Bare"), host, services, cfg)
    assert (result.winner, result.value) == ("platform", "Bare")

    result = resolve_text_chain(ResolutionContext(), draft, EntityDetails(title="Bare"), host, services, cfg)
    assert result.winner == "by-format"


def test_text_chain_without_entity_is_empty() -> None:
    entity = EntityRef(id=None, type="post", base_type="content-item")
    result = resolve_text_chain(ResolutionContext(), entity, EntityDetails(title="x"), HostContext(), _services())
    assert not result.found


def test_scrape_title_prefers_og_title() -> None:
    calls: list[str] = []
    html = (
        "<html><head><title>Plain</title>"
        '<meta property="og:title" content="  Open \n Graph  "></head>'
        "<body><title>Body</title></body></html>"
    )
    with _html_client(html, calls) as client:
        result = scrape_title("https://example.test/hello/", client)
    assert (result.status, result.title) == (200, "Open Graph")
    assert calls == ["https://example.test/hello/"]


def test_scrape_title_falls_back_to_title_tag_and_decodes_entities() -> None:
    with _html_client("<head><title>Tom &amp; Jerry</title></head>", []) as client:
        assert scrape_title("https://example.test/", client).title == "Tom & Jerry"


def test_scrape_title_failures_are_empty() -> None:
    with _html_client("<title>Gone</title>", [], status=404) as client:
        assert scrape_title("https://example.test/", client).title == ""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        result = scrape_title("https://example.test/", client)
    assert (result.status, result.title) == (0, "")


def test_scraped_title_wins_and_is_fetched_once_per_pass() -> None:
    calls: list[str] = []
    with _html_client('<head><meta name="og:title" content="Scraped"></head>', calls) as client:
        services = _services(http_client=client)
        details = EntityDetails(title="Hello", permalink="https://example.test/hello/")
        context = ResolutionContext()
        first = build_text_chain(context, POST, details, HostContext(blogname="Site"), services).resolve()
        second = build_text_chain(context, POST, details, HostContext(blogname="Site"), services).resolve()
    assert first.winner == second.winner == "scraped"
    assert first.value == "Scraped"
    assert len(calls) == 1
