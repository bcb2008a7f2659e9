import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from brandstamp.cli import app

runner = CliRunner()


def test_rewrite_command(tmp_path: Path) -> None:
    rules = tmp_path / "rules.json"
    rules.write_text(
        json.dumps(
            [
                ["([^/]+)/?$", "index.php?name=$matches[1]"],
                ["([^/]+)/social-image.jpg(/(.*))?/?$", "index.php?name=$matches[1]&bs_img=$matches[3]"],
            ]
        ),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["rewrite", str(rules), "--taxonomy", "genre:genres", "--log-level", "error"])
    assert result.exit_code == 0, result.output
    table = json.loads(result.stdout)
    assert table[0] == ["genres/(.+?)/social-image.jpg/?$", "index.php?genre=$matches[1]&bs_img=1"]
    assert ["([^/]+)/social-image.jpg/?$", "index.php?name=$matches[1]&bs_img=1"] in table
    assert table[-1] == ["([^/]+)/?$", "index.php?name=$matches[1]"]


def test_match_command(tmp_path: Path) -> None:
    rules = tmp_path / "rules.yaml"
    rules.write_text(
        yaml.safe_dump({"([^/]+)/social-image.jpg/?$": "index.php?name=$matches[1]&bs_img=1"}),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["match", str(rules), "https://example.test/hello/social-image.jpg", "--log-level", "error"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["target"] == "index.php?name=hello&bs_img=1"
    assert payload["has_query_var"] is True

    result = runner.invoke(app, ["match", str(rules), "https://example.test/a/b/c/", "--log-level", "error"])
    assert result.exit_code == 1


def test_resolve_command(tmp_path: Path) -> None:
    settings = tmp_path / "settings.yaml"
    settings.write_text(yaml.safe_dump({"_bs_default_image": "https://cdn.example.test/a.jpg"}), encoding="utf-8")
    config = tmp_path / "config.yaml"
    config.write_text("output_format: png\n", encoding="utf-8")
    result = runner.invoke(
        app,
        [
            "resolve",
            "7",
            "--title",
            "Hello",
            "--blogname",
            "Site",
            "--permalink",
            "https://example.test/hello/",
            "--settings",
            str(settings),
            "--config",
            str(config),
            "--no-scrape",
            "--log-level",
            "error",
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["text"] == "Hello - Site"
    assert payload["image_url"] == "https://cdn.example.test/a.jpg"
    assert payload["image_layer"] == "settings"
    assert payload["enabled"] is True
    assert payload["og_image"] == "https://example.test/hello/social-image.png/"


def test_malformed_config_is_reported(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("features: [unclosed\n", encoding="utf-8")
    rules = tmp_path / "rules.yaml"
    rules.write_text(yaml.safe_dump({"x/?$": "index.php?x=1"}), encoding="utf-8")
    result = runner.invoke(app, ["rewrite", str(rules), "--config", str(config), "--log-level", "error"])
    assert result.exit_code == 1
    assert "Config load failed" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_validate_command(tmp_path: Path) -> None:
    good = tmp_path / "good.yaml"
    good.write_text(yaml.safe_dump({"_bs_default_text_position": "top"}), encoding="utf-8")
    result = runner.invoke(app, ["validate", str(good)])
    assert result.exit_code == 0
    assert "Settings OK" in result.output

    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump({"_bs_default_text_position": "middle"}), encoding="utf-8")
    result = runner.invoke(app, ["validate", str(bad)])
    assert result.exit_code == 1


def test_init_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "Config" / "config.yaml"
    monkeypatch.setattr("brandstamp.config.get_config_path", lambda: target)
    result = runner.invoke(app, ["init-config"])
    assert result.exit_code == 0
    assert target.exists()
