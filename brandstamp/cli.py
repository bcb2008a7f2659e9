from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, NoReturn

import httpx
import typer
import yaml

from brandstamp.config import Features, get_settings_path, load_config, write_default_config
from brandstamp.constants import BASE_CONTENT_ITEM, QUERY_VAR
from brandstamp.errors import BrandstampError
from brandstamp.host import MappingAttachmentResolver, MemoryEntityMetadata
from brandstamp.models import EntityDetails, EntityRef, HostContext, Taxonomy
from brandstamp.naming import output_filename
from brandstamp.options import validate_settings
from brandstamp.resolver import entity_image_url, is_enabled_for, resolve_render_config
from brandstamp.rewrite import as_table, match_url, transform_rewrite_rules
from brandstamp.settings import MemorySettingsStore, YamlSettingsStore, load_mapping_file

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Branded social image parameter resolver.")
LOGGER = logging.getLogger("brandstamp")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(1)


def _load_cfg(config_path: Path | None) -> dict[str, Any]:
    try:
        return load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        _fail(f"Config load failed: {exc}")


def _parse_taxonomy(value: str) -> Taxonomy:
    """``name[:slug[:front]]``; front is ``front`` or ``nofront``."""
    parts = [part.strip() for part in value.split(":")]
    name = parts[0]
    slug = parts[1] if len(parts) > 1 and parts[1] else name
    with_front = not (len(parts) > 2 and parts[2].lower() in {"nofront", "0", "no", "false"})
    if not name:
        raise typer.BadParameter(f"taxonomy needs a name: {value!r}")
    return Taxonomy(name=name, slug=slug, with_front=with_front)


def _load_rules(rules_file: Path) -> Any:
    try:
        loaded = yaml.safe_load(rules_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ValueError(f"cannot read rules file {rules_file}: {exc}") from exc
    if isinstance(loaded, list):
        return [tuple(item) if isinstance(item, list) else item for item in loaded]
    if not isinstance(loaded, dict):
        raise ValueError(f"rules file must hold a mapping or a list of pairs: {rules_file}")
    return loaded


@app.command()
def resolve(
    entity_id: str = typer.Argument(..., help="Entity id, or 'archive' / 'new'."),
    entity_type: str = typer.Option("post", "--type"),
    base_type: str = typer.Option(BASE_CONTENT_ITEM, "--base", help="content-item|taxonomy-term|unsupported"),
    title: str = typer.Option("", "--title"),
    permalink: str | None = typer.Option(None, "--permalink"),
    thumbnail: str | None = typer.Option(None, "--thumbnail", help="Featured image attachment ref or URL."),
    blogname: str = typer.Option("", "--blogname"),
    plugins: list[str] = typer.Option([], "--plugin", help="Active SEO plugin: yoast|rankmath."),
    settings_file: Path | None = typer.Option(None, "--settings", dir_okay=False, help="Site settings YAML/JSON."),
    meta_file: Path | None = typer.Option(None, "--meta", exists=True, dir_okay=False, help="Entity overrides per id."),
    attachments_file: Path | None = typer.Option(
        None, "--attachments", exists=True, dir_okay=False, help="Attachment ref to [url, path]."
    ),
    config_path: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False),
    no_scrape: bool = typer.Option(False, "--no-scrape", help="Skip the live title scrape."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Print the resolved render config for one entity as JSON."""
    _setup_logging(log_level)
    cfg = _load_cfg(config_path)
    if no_scrape:
        cfg["scrape_titles"] = False

    try:
        settings_path = settings_file or get_settings_path(cfg)
        settings = YamlSettingsStore(settings_path, autosave=False) if settings_path.exists() else MemorySettingsStore()
        metadata = MemoryEntityMetadata(load_mapping_file(meta_file) if meta_file else None)
        attachments = MappingAttachmentResolver(load_mapping_file(attachments_file) if attachments_file else None)
    except BrandstampError as exc:
        _fail(str(exc))

    entity = EntityRef(id=entity_id, type=entity_type, base_type=base_type)
    details = EntityDetails(title=title, permalink=permalink, thumbnail=thumbnail)
    host = HostContext(blogname=blogname, active_plugins=frozenset(p.lower() for p in plugins))

    http = cfg.get("http") or {}
    with httpx.Client(timeout=float(http.get("timeout") or 5.0), follow_redirects=True) as client:
        result = resolve_render_config(
            entity,
            details,
            host,
            settings=settings,
            metadata=metadata,
            attachments=attachments,
            http_client=client,
            config=cfg,
        )
    payload = result.to_dict()
    payload["enabled"] = is_enabled_for(
        entity, details, host, settings=settings, metadata=metadata, attachments=attachments, config=cfg
    )
    payload["og_image"] = entity_image_url(entity, details, cfg)
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def rewrite(
    rules_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Rules as a mapping or [pattern, target] list."),
    taxonomies: list[str] = typer.Option([], "--taxonomy", help="Custom taxonomy as name[:slug[:nofront]]."),
    permalink_structure: str = typer.Option("/%postname%/", "--permalink-structure"),
    output_format: str | None = typer.Option(None, "--format", help="Image format: jpg|png"),
    config_path: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Print the rewrite table with the image endpoint rules in place."""
    _setup_logging(log_level)
    cfg = _load_cfg(config_path)
    try:
        rules = _load_rules(rules_file)
        table = transform_rewrite_rules(
            rules,
            output_filename(output_format or cfg.get("output_format")),
            taxonomies=[_parse_taxonomy(value) for value in taxonomies],
            permalink_structure=permalink_structure,
        )
    except (BrandstampError, ValueError, TypeError) as exc:
        _fail(f"Rewrite failed: {exc}")
    typer.echo(json.dumps([[rule.pattern, rule.target] for rule in table], ensure_ascii=False, indent=2))


@app.command()
def match(
    rules_file: Path = typer.Argument(..., exists=True, dir_okay=False),
    url: str = typer.Argument(...),
    permalink_structure: str = typer.Option("/%postname%/", "--permalink-structure"),
    output_format: str | None = typer.Option(None, "--format", help="Image format: jpg|png"),
    config_path: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Show which rule of an already transformed table a URL would hit."""
    _setup_logging(log_level)
    cfg = _load_cfg(config_path)
    try:
        table = as_table(_load_rules(rules_file))
    except (BrandstampError, ValueError, TypeError) as exc:
        _fail(f"Rules load failed: {exc}")
    found = match_url(
        table,
        url,
        endpoint=output_filename(output_format or cfg.get("output_format")),
        permalink_structure=permalink_structure,
        query_var=QUERY_VAR,
    )
    if found is None:
        typer.secho(f"No rule matches {url}", fg=typer.colors.YELLOW)
        raise typer.Exit(1)
    payload = {
        "rule#": found.index,
        "rule": found.rule,
        "target": found.target,
        "has_query_var": found.has_query_var,
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command()
def validate(
    settings_file: Path = typer.Argument(..., exists=True, dir_okay=False),
    config_path: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False),
) -> None:
    """Check stored site settings against the option schema."""
    cfg = _load_cfg(config_path)
    try:
        accepted = validate_settings(load_mapping_file(settings_file), Features.from_config(cfg))
    except BrandstampError as exc:
        _fail(str(exc))
    typer.echo(f"Settings OK: {len(accepted)} option(s) in {settings_file}")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()
