"""Tests for the ctxsync CLI: init, sync, validate."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from ctxsync import __version__
from ctxsync.cli import main
from ctxsync.config import CONFIG_FILENAME

if TYPE_CHECKING:
    from pathlib import Path

LOCAL_DOC = """\
---
what: URL helpers
when:
  - parsing URLs
---
"""


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


class TestMain:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "sync", "validate"):
            assert command in result.output


class TestInit:
    def test_creates_config_and_registries(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / CONFIG_FILENAME).is_file()
        assert (tmp_path / "ctx" / "local-context-registry.yml").is_file()
        assert (tmp_path / "ctx" / "global-context-registry.yml").is_file()
        assert f"Created {CONFIG_FILENAME}" in result.output

    def test_refuses_to_overwrite(self, tmp_project: Path) -> None:
        result = CliRunner().invoke(main, ["init", "--project", str(tmp_project)])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_force_keeps_existing_entries(self, tmp_project: Path) -> None:
        runner = CliRunner()
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        runner.invoke(main, ["sync", "--project", str(tmp_project)])

        result = runner.invoke(main, ["init", "--force", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        registry = (tmp_project / "ctx" / "local-context-registry.yml").read_text(
            encoding="utf-8"
        )
        assert "/src/a.py" in registry


class TestSync:
    def test_requires_init(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["sync", "--project", str(tmp_path)])
        assert result.exit_code == 1
        assert "not initialized" in result.output

    def test_reports_counts(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        _write(tmp_project, "ctx/rules/api.md", LOCAL_DOC)

        result = CliRunner().invoke(main, ["sync", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        assert "Synced 1 local context(s)" in result.output
        assert "Synced 1 global context(s)" in result.output
        assert "Sync complete!" in result.output

    def test_local_only(self, tmp_project: Path) -> None:
        result = CliRunner().invoke(main, ["sync", "--local", "--project", str(tmp_project)])
        assert result.exit_code == 0, result.output
        assert "local context(s)" in result.output
        assert "global context(s)" not in result.output

    def test_warnings_are_logged_once(
        self, tmp_project: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        _write(tmp_project, "ctx/notes.md", "# no header\n")
        with caplog.at_level(logging.WARNING):
            result = CliRunner().invoke(
                main, ["sync", "--global", "--project", str(tmp_project)]
            )
        assert result.exit_code == 0, result.output
        assert "1 warning(s)" in result.output
        assert "no valid frontmatter" not in result.output
        messages = [r.getMessage() for r in caplog.records]
        assert sum("no valid frontmatter" in m for m in messages) == 1

    def test_registry_failure_exits_nonzero(
        self, tmp_project: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_project / "ctx" / "local-context-registry.yml").mkdir()
        with caplog.at_level(logging.WARNING):
            result = CliRunner().invoke(main, ["sync", "--project", str(tmp_project)])
        assert result.exit_code == 1
        assert "1 error(s) occurred during sync" in result.output
        assert any(
            r.levelno == logging.ERROR and "Failed to sync local contexts" in r.getMessage()
            for r in caplog.records
        )


class TestValidate:
    def test_clean_project(self, tmp_project: Path) -> None:
        runner = CliRunner()
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        runner.invoke(main, ["sync", "--project", str(tmp_project)])

        result = runner.invoke(main, ["validate", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        assert "Validation passed!" in result.output

    def test_warnings_do_not_fail(self, tmp_project: Path) -> None:
        runner = CliRunner()
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        runner.invoke(main, ["sync", "--project", str(tmp_project)])
        _write(tmp_project, "src/a.py", "changed\n")

        result = runner.invoke(main, ["validate", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        assert "target-changed" in result.output
        assert "passed with warnings" in result.output

    def test_errors_fail(self, tmp_project: Path) -> None:
        runner = CliRunner()
        _write(tmp_project, "src/a.py", "")
        doc = _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        runner.invoke(main, ["sync", "--project", str(tmp_project)])
        doc.unlink()

        result = runner.invoke(main, ["validate", "--project", str(tmp_project)])

        assert result.exit_code == 1
        assert "document-missing" in result.output
        assert "Validation failed" in result.output

    def test_json_output(self, tmp_project: Path) -> None:
        runner = CliRunner()
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        runner.invoke(main, ["sync", "--project", str(tmp_project)])
        (tmp_project / "src" / "a.py").unlink()

        result = runner.invoke(main, ["validate", "--json", "--project", str(tmp_project)])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["summary"]["warnings"] == 1
        assert data["issues"][0]["checks"][-1]["code"] == "target-missing"

    def test_requires_init(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["validate", "--project", str(tmp_path)])
        assert result.exit_code == 1
