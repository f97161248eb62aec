"""Tests for the ontology-sync command line.

Each test drives ``run()`` with an explicit ``--config`` pointing at a
temporary store, state directory and file source.
"""

import json
import textwrap
from unittest.mock import patch

import pytest

from ontology_sync import __version__
from ontology_sync.cli import build_parser, run

from conftest import PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    """Keep run() from reconfiguring logging or reading a .env file."""
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    with patch("ontology_sync.cli.setup_logging"), patch(
        "ontology_sync.cli.load_dotenv"
    ):
        yield


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "people.yml"
    path.write_text(PEOPLE_TEMPLATE, encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path, template):
    path = tmp_path / "config.yml"
    path.write_text(
        textwrap.dedent(
            f"""\
            sync:
              retry_count: 1
              retry_delay: 0
              state_dir: {tmp_path / "state"}
            store:
              path: {tmp_path / "ontology.json"}
            sources:
              people:
                name: People
                location: {template}
                type: file
            """
        ),
        encoding="utf-8",
    )
    return path


def _run(*argv):
    with pytest.raises(SystemExit) as exc_info:
        run(list(argv))
    return exc_info.value.code


class TestParser:
    """Tests for build_parser()."""

    def test_version(self, capsys):
        assert _run("--version") == 0
        assert f"ontology-sync version {__version__}" in capsys.readouterr().out

    def test_command_required(self):
        assert _run() == 2

    def test_sync_strategy_choices(self):
        args = build_parser().parse_args(["sync", "core", "--strategy", "keep-local"])
        assert args.strategy == "keep-local"
        with pytest.raises(SystemExit):
            build_parser().parse_args(["sync", "core", "--strategy", "yolo"])

    def test_state_limit_default(self):
        args = build_parser().parse_args(["state", "show", "core"])
        assert args.limit == 20


class TestImportCommands:
    """Tests for preview and import."""

    def test_preview(self, config_file, template, capsys):
        assert _run("--config", str(config_file), "preview", str(template)) == 0
        out = capsys.readouterr().out
        assert out.startswith("3 new, 0 updated, 0 conflicts")

    def test_import_writes_store(self, config_file, template, tmp_path, capsys):
        assert _run("--config", str(config_file), "import", str(template)) == 0
        assert "Import succeeded" in capsys.readouterr().out
        assert (tmp_path / "ontology.json").is_file()

        assert _run("--config", str(config_file), "preview", str(template)) == 0
        assert "No changes." in capsys.readouterr().out

    def test_import_dry_run(self, config_file, template, tmp_path, capsys):
        code = _run("--config", str(config_file), "import", str(template), "--dry-run")
        assert code == 0
        assert capsys.readouterr().out.startswith("DRY RUN")
        assert not (tmp_path / "ontology.json").exists()

    def test_import_json(self, config_file, template, capsys):
        assert _run("--config", str(config_file), "--json", "import", str(template)) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["success"] is True
        assert payload["applied"] == {"classes": 1, "properties": 2}

    def test_conflicts_fail_under_ask(self, config_file, template, tmp_path, capsys):
        _run("--config", str(config_file), "import", str(template))
        v2 = tmp_path / "people_v2.yml"
        v2.write_text(PEOPLE_TEMPLATE_V2, encoding="utf-8")
        capsys.readouterr()

        assert _run("--config", str(config_file), "import", str(v2)) == 1
        assert "Import failed" in capsys.readouterr().out
        code = _run(
            "--config",
            str(config_file),
            "import",
            str(v2),
            "--conflict-strategy",
            "overwrite",
        )
        assert code == 0

    def test_missing_file(self, config_file, tmp_path, capsys):
        code = _run("--config", str(config_file), "preview", str(tmp_path / "nope.yml"))
        assert code == 1
        assert "Error: File not found" in capsys.readouterr().err


class TestSyncCommands:
    """Tests for check, sync and state."""

    def test_check_then_sync(self, config_file, capsys):
        assert _run("--config", str(config_file), "check", "people") == 0
        out = capsys.readouterr().out
        assert "Updates available." in out
        assert "  + Person" in out

        assert _run("--config", str(config_file), "sync", "people") == 0
        assert "Applied 1 classes and 2 properties" in capsys.readouterr().out

        assert _run("--config", str(config_file), "sync", "people") == 0
        assert "Up to date." in capsys.readouterr().out

    def test_sync_dry_run(self, config_file, capsys):
        assert _run("--config", str(config_file), "sync", "people", "--dry-run") == 0
        assert "(DRY RUN)" in capsys.readouterr().out
        assert _run("--config", str(config_file), "state", "show", "people") == 0
        assert capsys.readouterr().out.strip() == "No sync state."

    def test_unknown_source(self, config_file, capsys):
        assert _run("--config", str(config_file), "--json", "sync", "ghost") == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["error_code"] == "INVALID_SOURCE"
        assert payload["source_id"] == "ghost"

    def test_state_show_list_clear(self, config_file, capsys):
        _run("--config", str(config_file), "sync", "people")
        capsys.readouterr()

        assert _run("--config", str(config_file), "state", "list") == 0
        assert capsys.readouterr().out.strip() == "people"

        assert _run("--config", str(config_file), "state", "show", "people") == 0
        out = capsys.readouterr().out
        assert "Source: people" in out
        assert "History:" in out

        assert _run("--config", str(config_file), "state", "clear", "people") == 0
        assert "Cleared sync state for 'people'" in capsys.readouterr().out
        assert _run("--config", str(config_file), "state", "list") == 0
        assert capsys.readouterr().out.strip() == "No sync state."


class TestConfigErrors:
    """Configuration failures exit with status 1."""

    def test_missing_config(self, tmp_path, capsys):
        assert _run("--config", str(tmp_path / "missing.yml"), "state", "list") == 1
        assert "Error: invalid configuration" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "config.yml"
        path.write_text("sync:\n  retry_count: 0\n", encoding="utf-8")
        assert _run("--config", str(path), "state", "list") == 1
        assert "Error: invalid configuration" in capsys.readouterr().err
