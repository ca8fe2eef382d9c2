"""Tests for ctxsync.doc_sync.engine: local/global reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ctxsync.config import Config
from ctxsync.doc_sync.engine import compute_folders, reconcile_global, reconcile_local, sync
from ctxsync.doc_sync.fingerprint import combine_fingerprints, fingerprint
from ctxsync.doc_sync.parser import Preview
from ctxsync.doc_sync.registry import GlobalEntry, RegistryKind, RegistryStore

if TYPE_CHECKING:
    from pathlib import Path

LOCAL_DOC = """\
---
version: 1.0.0
what: URL helpers
when:
  - parsing URLs
---
# URL helpers
"""

GLOBAL_DOC = """\
---
what: API rules
when:
  - designing endpoints
---
Body.
"""


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


# ---------------------------------------------------------------------------
# Local
# ---------------------------------------------------------------------------


class TestReconcileLocal:
    def test_inferred_target(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/utils/url.ts", "export {}\n")
        _write(tmp_project, "src/utils/url.ctx.md", LOCAL_DOC)

        result = reconcile_local(tmp_project, Config())

        assert result.scanned == 1
        assert result.synced == 1
        assert result.warnings == []
        entry = RegistryStore(tmp_project).read_local().contexts["/src/utils/url.ts"]
        assert entry.source == "src/utils/url.ctx.md"
        assert entry.checksum == fingerprint(LOCAL_DOC)
        assert entry.target_checksum == fingerprint("export {}\n")
        assert entry.preview == Preview(what="URL helpers", when=["parsing URLs"])
        assert entry.last_modified.endswith("+00:00")

    def test_explicit_target_wins(self, tmp_project: Path) -> None:
        _write(tmp_project, "lib/real.py", "pass\n")
        content = LOCAL_DOC.replace("what:", "target: lib/real.py\nwhat:")
        _write(tmp_project, "docs/notes.ctx.md", content)

        reconcile_local(tmp_project, Config())

        contexts = RegistryStore(tmp_project).read_local().contexts
        assert list(contexts) == ["/lib/real.py"]

    def test_directory_target(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/services/ctx.md", LOCAL_DOC)

        result = reconcile_local(tmp_project, Config())

        assert result.warnings == []
        entry = RegistryStore(tmp_project).read_local().contexts["/src/services"]
        assert entry.target_checksum == ""

    def test_missing_target_warns_but_records(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/gone.ctx.md", LOCAL_DOC)

        result = reconcile_local(tmp_project, Config())

        assert result.synced == 1
        assert result.warnings == ["Target file not found: /src/gone"]
        entry = RegistryStore(tmp_project).read_local().contexts["/src/gone"]
        assert entry.target_checksum == ""

    def test_invalid_schema_is_skipped_with_warning(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/a.ctx.md", "---\nwhat: x\n---\n")
        _write(tmp_project, "src/a.py", "")

        result = reconcile_local(tmp_project, Config())

        assert result.scanned == 1
        assert result.synced == 0
        assert result.errors == []
        assert result.warnings == [
            "src/a.ctx.md has validation errors: Missing or empty required field: when"
        ]
        assert RegistryStore(tmp_project).read_local().contexts == {}

    def test_parse_error_does_not_block_batch(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/a.ctx.md", "---\nwhat: x\n")
        _write(tmp_project, "src/b.py", "")
        _write(tmp_project, "src/b.ctx.md", LOCAL_DOC)

        result = reconcile_local(tmp_project, Config())

        assert result.scanned == 2
        assert result.synced == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Cannot parse src/a.ctx.md:")
        assert "/src/b.py" in RegistryStore(tmp_project).read_local().contexts

    def test_merge_keeps_untouched_entries(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/a.py", "")
        doc = _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        reconcile_local(tmp_project, Config())

        doc.unlink()
        reconcile_local(tmp_project, Config())

        assert "/src/a.py" in RegistryStore(tmp_project).read_local().contexts

    def test_global_directory_never_scanned_as_local(self, tmp_project: Path) -> None:
        _write(tmp_project, "ctx/ctx.md", LOCAL_DOC)
        result = reconcile_local(tmp_project, Config())
        assert result.scanned == 0


# ---------------------------------------------------------------------------
# Global
# ---------------------------------------------------------------------------


class TestComputeFolders:
    def _entry(self, folder: str | None, checksum: str, modified: str) -> GlobalEntry:
        return GlobalEntry(
            source="x",
            folder=folder,
            checksum=checksum,
            last_modified=modified,
            preview=Preview(what="x", when=["y"]),
        )

    def test_fold(self) -> None:
        entries = {
            "/rules/a.md": self._entry("rules", "aa", "2024-01-01"),
            "/rules/b.md": self._entry("rules", "bb", "2024-03-01"),
            "/guides/c.md": self._entry("guides", "cc", "2024-02-01"),
            "/root.md": self._entry(None, "dd", "2025-01-01"),
        }
        folders = compute_folders(entries)
        assert list(folders) == ["guides", "rules"]
        assert folders["rules"].checksum == combine_fingerprints(["bb", "aa"])
        assert folders["rules"].last_modified == "2024-03-01"
        assert folders["guides"].checksum == combine_fingerprints(["cc"])

    def test_empty(self) -> None:
        assert compute_folders({}) == {}


class TestReconcileGlobal:
    def test_documents_and_folders(self, tmp_project: Path) -> None:
        _write(tmp_project, "ctx/rules/api.md", GLOBAL_DOC)
        _write(tmp_project, "ctx/overview.md", GLOBAL_DOC)

        result = reconcile_global(tmp_project, Config())

        assert result.scanned == 2
        assert result.synced == 2
        registry = RegistryStore(tmp_project).read_global()
        assert sorted(registry.contexts) == ["/overview.md", "/rules/api.md"]
        api = registry.contexts["/rules/api.md"]
        assert api.source == "ctx/rules/api.md"
        assert api.folder == "rules"
        assert registry.contexts["/overview.md"].folder is None
        assert list(registry.folders) == ["rules"]
        assert registry.folders["rules"].checksum == combine_fingerprints([api.checksum])

    def test_missing_frontmatter_skipped(self, tmp_project: Path) -> None:
        _write(tmp_project, "ctx/notes.md", "# No header\n")

        result = reconcile_global(tmp_project, Config())

        assert result.scanned == 1
        assert result.synced == 0
        assert result.warnings == [
            "ctx/notes.md has no valid frontmatter (missing 'when' or 'what'). Skipping."
        ]

    def test_null_only_when_is_skipped(self, tmp_project: Path) -> None:
        _write(tmp_project, "ctx/rules/a.md", "---\nwhat: x\nwhen:\n  - ~\n---\n")

        result = reconcile_global(tmp_project, Config())

        assert result.synced == 0
        assert len(result.warnings) == 1
        registry = RegistryStore(tmp_project).read_global()
        assert registry.contexts == {}
        assert registry.folders == {}

    def test_rebuild_drops_deleted_documents(self, tmp_project: Path) -> None:
        doc = _write(tmp_project, "ctx/rules/api.md", GLOBAL_DOC)
        reconcile_global(tmp_project, Config())

        doc.unlink()
        reconcile_global(tmp_project, Config())

        registry = RegistryStore(tmp_project).read_global()
        assert registry.contexts == {}
        assert registry.folders == {}

    def test_ignored_files(self, tmp_project: Path) -> None:
        _write(tmp_project, "ctx/README.md", GLOBAL_DOC)
        _write(tmp_project, "ctx/templates/t.md", GLOBAL_DOC)
        result = reconcile_global(tmp_project, Config())
        assert result.scanned == 0


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class TestSync:
    def test_both_directions(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/a.py", "")
        _write(tmp_project, "src/a.ctx.md", LOCAL_DOC)
        _write(tmp_project, "ctx/rules/api.md", GLOBAL_DOC)

        result = sync(tmp_project)

        assert result.errors == []
        assert result.local_synced == 1
        assert result.global_synced == 1

    def test_local_only(self, tmp_project: Path) -> None:
        result = sync(tmp_project, global_=False)
        assert result.local is not None
        assert result.global_ is None
        assert result.global_synced == 0
        assert not RegistryStore(tmp_project).path_for(RegistryKind.GLOBAL).exists()

    def test_failure_in_one_direction_is_isolated(self, tmp_project: Path) -> None:
        store = RegistryStore(tmp_project)
        # A directory where the local registry file should be.
        store.path_for(RegistryKind.LOCAL).mkdir()
        _write(tmp_project, "ctx/rules/api.md", GLOBAL_DOC)

        result = sync(tmp_project)

        assert result.local is None
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Failed to sync local contexts:")
        assert result.global_synced == 1
        assert "/rules/api.md" in store.read_global().contexts

    def test_warnings_collected_from_both_directions(self, tmp_project: Path) -> None:
        _write(tmp_project, "src/gone.ctx.md", LOCAL_DOC)
        _write(tmp_project, "ctx/notes.md", "# No header\n")

        result = sync(tmp_project)

        assert result.warnings == [
            "Target file not found: /src/gone",
            "ctx/notes.md has no valid frontmatter (missing 'when' or 'what'). Skipping.",
        ]
