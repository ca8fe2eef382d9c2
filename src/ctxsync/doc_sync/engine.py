"""Reconciler: scan, parse, fingerprint and merge documents into the registry.

Local sync is a merge: entries not touched by the current pass are kept, so
partial syncs with different configurations can coexist.  Global sync is a
full rebuild, because folder aggregates must fold over the complete set of
global entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ctxsync.config import load_config
from ctxsync.doc_sync.fingerprint import combine_fingerprints, fingerprint, fingerprint_file
from ctxsync.doc_sync.parser import (
    extract,
    extract_preview,
    extract_preview_from_raw,
    require_valid,
)
from ctxsync.doc_sync.paths import (
    extract_folder,
    global_registry_key,
    infer_target_key,
    resolve_key_path,
    to_registry_key,
)
from ctxsync.doc_sync.registry import (
    FolderAggregate,
    GlobalEntry,
    LocalEntry,
    RegistryKind,
    RegistryStore,
)
from ctxsync.doc_sync.scanner import scan_global, scan_local
from ctxsync.errors import CtxSyncError, DocumentError, SchemaError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from ctxsync.config import Config
    from ctxsync.doc_sync.registry import GlobalRegistry, LocalRegistry
    from ctxsync.doc_sync.scanner import ScannedDocument

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass.

    ``scanned`` counts every discovered document, including the ones that
    were skipped.  ``warnings`` hold skipped documents and missing targets;
    ``errors`` hold per-document failures.  Neither aborts the pass.
    """

    scanned: int = 0
    synced: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    """Outcome of :func:`sync` over both collections."""

    local: ReconcileResult | None = None
    global_: ReconcileResult | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def local_synced(self) -> int:
        return self.local.scanned if self.local else 0

    @property
    def global_synced(self) -> int:
        return self.global_.scanned if self.global_ else 0

    @property
    def warnings(self) -> list[str]:
        """Warnings of both directions, local first."""
        collected: list[str] = []
        for result in (self.local, self.global_):
            if result is not None:
                collected.extend(result.warnings)
        return collected


def file_last_modified(path: Path) -> str:
    """Return the mtime of *path* as an ISO-8601 UTC timestamp."""
    mtime = path.stat().st_mtime
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(timespec="microseconds")


def _warn(result: ReconcileResult, message: str) -> None:
    logger.warning(message)
    result.warnings.append(message)


def _fail(result: ReconcileResult, message: str) -> None:
    logger.error(message)
    result.errors.append(message)


# ---------------------------------------------------------------------------
# Local
# ---------------------------------------------------------------------------


def _reconcile_local_document(
    project_root: Path,
    scanned: ScannedDocument,
    registry: LocalRegistry,
    result: ReconcileResult,
) -> None:
    parsed = extract(scanned.relative_path, scanned.content)
    if isinstance(parsed, DocumentError):
        _fail(result, f"Cannot parse {scanned.relative_path}: {parsed.reason}")
        return

    try:
        require_valid(parsed)
    except SchemaError as exc:
        _warn(result, f"{scanned.relative_path} has validation errors: {exc.reason}")
        return

    if parsed.target:
        target_key = to_registry_key(parsed.target)
    else:
        target_key = infer_target_key(project_root, scanned.relative_path)

    target_path = resolve_key_path(project_root, target_key)
    target_checksum = ""
    if target_path.is_file():
        target_checksum = fingerprint_file(target_path)
    elif not target_path.exists():
        _warn(result, f"Target file not found: {target_key}")

    registry.contexts[target_key] = LocalEntry(
        source=scanned.relative_path,
        checksum=fingerprint(scanned.content),
        target_checksum=target_checksum,
        last_modified=file_last_modified(scanned.absolute_path),
        preview=extract_preview(parsed),
    )
    result.synced += 1


def reconcile_local(
    project_root: Path,
    config: Config,
    *,
    store: RegistryStore | None = None,
) -> ReconcileResult:
    """Merge local context documents into the local registry.

    Entries are keyed by target path.  An explicit ``target`` wins over the
    path inferred from the document's own location.

    Raises
    ------
    RegistryWriteError
        If the registry cannot be written.
    """
    store = store or RegistryStore(project_root, config.global_docs.directory)
    result = ReconcileResult()

    documents = scan_local(project_root, config)
    result.scanned = len(documents)

    registry = store.read_local()
    for scanned in documents:
        try:
            _reconcile_local_document(project_root, scanned, registry, result)
        except Exception as exc:
            _fail(result, f"Error processing {scanned.relative_path}: {exc}")

    store.write(RegistryKind.LOCAL, registry)
    logger.info(
        "Local sync: %d scanned, %d synced, %d skipped",
        result.scanned,
        result.synced,
        result.scanned - result.synced,
    )
    return result


# ---------------------------------------------------------------------------
# Global
# ---------------------------------------------------------------------------


def compute_folders(entries: Mapping[str, GlobalEntry]) -> dict[str, FolderAggregate]:
    """Fold global entries into per-folder aggregates.

    The combined checksum fingerprints the sorted member checksums, so it
    does not depend on discovery order.  Root-level documents belong to no
    folder.
    """
    members: dict[str, list[GlobalEntry]] = {}
    for entry in entries.values():
        if entry.folder is None:
            continue
        members.setdefault(entry.folder, []).append(entry)

    return {
        name: FolderAggregate(
            checksum=combine_fingerprints(e.checksum for e in group),
            last_modified=max(e.last_modified for e in group),
        )
        for name, group in sorted(members.items())
    }


def _reconcile_global_document(
    scanned: ScannedDocument,
    directory: str,
    registry: GlobalRegistry,
    result: ReconcileResult,
) -> None:
    preview = extract_preview_from_raw(scanned.content)
    if preview is None:
        _warn(
            result,
            f"{scanned.relative_path} has no valid frontmatter "
            "(missing 'when' or 'what'). Skipping.",
        )
        return

    key = global_registry_key(scanned.relative_path, directory)
    registry.contexts[key] = GlobalEntry(
        source=scanned.relative_path,
        folder=extract_folder(scanned.relative_path, directory),
        checksum=fingerprint(scanned.content),
        last_modified=file_last_modified(scanned.absolute_path),
        preview=preview,
    )
    result.synced += 1


def reconcile_global(
    project_root: Path,
    config: Config,
    *,
    store: RegistryStore | None = None,
) -> ReconcileResult:
    """Rebuild the global registry from the global directory.

    Raises
    ------
    RegistryWriteError
        If the registry cannot be written.
    """
    directory = config.global_docs.directory
    store = store or RegistryStore(project_root, directory)
    result = ReconcileResult()

    documents = scan_global(project_root, config)
    result.scanned = len(documents)

    registry = store.read_global()
    registry.contexts = {}
    for scanned in documents:
        try:
            _reconcile_global_document(scanned, directory, registry, result)
        except Exception as exc:
            _fail(result, f"Error processing {scanned.relative_path}: {exc}")

    registry.folders = compute_folders(registry.contexts)
    store.write(RegistryKind.GLOBAL, registry)
    logger.info(
        "Global sync: %d scanned, %d synced, %d folder(s)",
        result.scanned,
        result.synced,
        len(registry.folders),
    )
    return result


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def sync(
    project_root: Path,
    config: Config | None = None,
    *,
    local: bool = True,
    global_: bool = True,
) -> SyncResult:
    """Reconcile the local and/or global registries.

    The two directions are independent: a fatal failure in one (for
    example an unwritable registry) is recorded in ``errors`` and the other
    still runs.
    """
    config = config or load_config(project_root)
    store = RegistryStore(project_root, config.global_docs.directory)
    result = SyncResult()

    if local:
        try:
            result.local = reconcile_local(project_root, config, store=store)
        except (CtxSyncError, OSError) as exc:
            message = f"Failed to sync local contexts: {exc}"
            logger.error(message)
            result.errors.append(message)

    if global_:
        try:
            result.global_ = reconcile_global(project_root, config, store=store)
        except (CtxSyncError, OSError) as exc:
            message = f"Failed to sync global contexts: {exc}"
            logger.error(message)
            result.errors.append(message)

    return result
