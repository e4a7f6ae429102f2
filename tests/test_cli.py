"""Smoke tests for the CLI."""

import json
import re
from pathlib import Path

import pytest
from reelledger import __version__
from reelledger.cli import app
from rich.console import Console
from typer.testing import CliRunner

CLI_ENV = {"COLUMNS": "200", "NO_COLOR": "1"}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for key in ("REELLEDGER_STORE_DIR", "REELLEDGER_FEED_URL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("reelledger.config.GLOBAL_CONFIG_PATH", tmp_path / "no-global.toml")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("reelledger.cli.console", Console(width=200, no_color=True))


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "store"


def _invoke(runner: CliRunner, store_dir: Path, *args: str):
    return runner.invoke(app, ["--store-dir", str(store_dir), *args], env=CLI_ENV)


def _asset_id(output: str) -> str:
    match = re.search(r"id:\s+([0-9a-f]{32})", output)
    assert match, output
    return match.group(1)


class TestCLI:
    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"], env=CLI_ENV)
        assert result.exit_code == 0
        assert "resolve-audio" in result.output

    def test_main_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"], env=CLI_ENV)
        assert result.exit_code == 0
        assert __version__ in result.output


class TestVersionCommands:
    def test_create_and_list(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "create", "--body", "line1\nline2")
        assert result.exit_code == 0, result.output
        root_id = _asset_id(result.output)
        assert "Version 1" in result.output

        result = _invoke(
            runner, store_dir, "create", "--lineage", root_id, "--body", "line1\nline2\nline3"
        )
        assert result.exit_code == 0, result.output
        assert "(v2, latest)" in result.output

        result = _invoke(runner, store_dir, "versions", root_id)
        assert result.exit_code == 0
        assert "Version 1" in result.output
        assert "Version 2" in result.output

    def test_create_from_file(self, runner: CliRunner, store_dir: Path, tmp_path: Path) -> None:
        script = tmp_path / "scene1.txt"
        script.write_text("INT. HOUSE - DAY\n", encoding="utf-8")
        result = _invoke(
            runner, store_dir, "create", "--body-file", str(script), "--title", "Scene 1"
        )
        assert result.exit_code == 0, result.output
        assert "Scene 1" in result.output

    def test_create_requires_body(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "create")
        assert result.exit_code == 1
        assert "--body" in result.output

    def test_create_on_unknown_lineage(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "create", "--lineage", "missing", "--body", "x")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_latest_relabel_delete(self, runner: CliRunner, store_dir: Path) -> None:
        root_id = _asset_id(_invoke(runner, store_dir, "create", "--body", "a").output)
        v2_id = _asset_id(
            _invoke(runner, store_dir, "create", "-l", root_id, "--body", "b").output
        )

        result = _invoke(runner, store_dir, "latest", root_id)
        assert _asset_id(result.output) == v2_id

        result = _invoke(runner, store_dir, "relabel", root_id, "Table read")
        assert result.exit_code == 0
        assert "Table read" in result.output

        result = _invoke(runner, store_dir, "delete", v2_id)
        assert result.exit_code == 0
        assert "Promoted version 1" in result.output
        assert _asset_id(_invoke(runner, store_dir, "latest", root_id).output) == root_id

    def test_compare_across_lineages_fails(self, runner: CliRunner, store_dir: Path) -> None:
        a = _asset_id(_invoke(runner, store_dir, "create", "--body", "a").output)
        b = _asset_id(_invoke(runner, store_dir, "create", "--body", "b").output)
        result = _invoke(runner, store_dir, "compare", a, b)
        assert result.exit_code == 1
        assert "different lineages" in result.output

    def test_versions_of_unknown_lineage(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "versions", "missing")
        assert result.exit_code == 1


class TestPageCommands:
    def test_paginate_file(self, runner: CliRunner, store_dir: Path, tmp_path: Path) -> None:
        script = tmp_path / "s.txt"
        script.write_text("L1\nL2\nL3\nL4\nL5", encoding="utf-8")
        result = _invoke(runner, store_dir, "paginate", str(script), "-n", "2")
        assert result.exit_code == 0, result.output
        assert "3 page(s)" in result.output
        assert "Page 3" in result.output

    def test_paginate_rejects_zero(self, runner: CliRunner, store_dir: Path, tmp_path: Path):
        script = tmp_path / "s.txt"
        script.write_text("L1", encoding="utf-8")
        result = _invoke(runner, store_dir, "paginate", str(script), "-n", "0")
        assert result.exit_code == 1

    def test_pages_of_lineage(self, runner: CliRunner, store_dir: Path) -> None:
        root_id = _asset_id(_invoke(runner, store_dir, "create", "--body", "L1\nL2").output)
        result = _invoke(runner, store_dir, "pages", root_id, "--page", "1")
        assert result.exit_code == 0
        assert "1 page(s)" in result.output
        assert "L2" in result.output


class TestResolveAudio:
    def test_resolves_and_saves_index(self, runner: CliRunner, store_dir: Path) -> None:
        _invoke(runner, store_dir, "create", "--scene", "s1", "--body", "INT. HOUSE\nJOHN")
        result = _invoke(
            runner,
            store_dir,
            "create",
            "--type",
            "audio",
            "--scene",
            "s1",
            "--title",
            "Scene Page 1 Audio",
            "--body",
            "https://cdn/p1.mp3",
        )
        assert result.exit_code == 0, result.output
        _invoke(
            runner,
            store_dir,
            "create",
            "-t",
            "audio",
            "--scene",
            "s1",
            "--title",
            "Page 9 Audio",
            "--body",
            "https://cdn/p9.mp3",
        )

        result = _invoke(runner, store_dir, "resolve-audio", "s1")
        assert result.exit_code == 0, result.output
        assert "https://cdn/p1.mp3" in result.output
        assert "1 audio asset(s) unresolved" in result.output

        data = json.loads((store_dir / ".reelledger-page-audio.json").read_text(encoding="utf-8"))
        assert [(e["scene_id"], e["page_number"]) for e in data["entries"]] == [("s1", 1)]

    def test_unreachable_feed_fails(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(
            runner, store_dir, "resolve-audio", "s1", "--feed-url", "http://127.0.0.1:9/audio"
        )
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert not (store_dir / ".reelledger-page-audio.json").exists()
