"""Registry store: persisted YAML index of local and global context documents.

Two independent files live in the global directory:

* ``local-context-registry.yml``: keyed by target path.
* ``global-context-registry.yml``: keyed by document path, plus a
  ``folders`` aggregate.

Reading never fails: a missing or unusable file reads as an empty registry.
Writing always re-stamps ``meta.last_synced``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Union

import yaml

from ctxsync.doc_sync.parser import Preview
from ctxsync.errors import RegistryWriteError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

REGISTRY_VERSION = "1.0.0"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(tz=timezone.utc).isoformat(timespec="microseconds")


class RegistryKind(enum.Enum):
    """Which of the two registry collections."""

    LOCAL = "local"
    GLOBAL = "global"

    @property
    def filename(self) -> str:
        return f"{self.value}-context-registry.yml"


@dataclass
class RegistryMeta:
    """Registry header."""

    version: str = REGISTRY_VERSION
    last_synced: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "last_synced": self.last_synced}

    @classmethod
    def from_dict(cls, raw: Any) -> RegistryMeta:
        if not isinstance(raw, dict):
            return cls()
        return cls(
            version=str(raw.get("version") or REGISTRY_VERSION),
            last_synced=str(raw.get("last_synced") or utc_now()),
        )


def _require_str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        msg = f"missing '{key}'"
        raise ValueError(msg)
    return value


def _preview_from(raw: Any) -> Preview:
    if isinstance(raw, dict):
        return Preview.from_dict(raw)
    return Preview(what="", when=[])


@dataclass
class LocalEntry:
    """Registry record for a local document, keyed by its target."""

    source: str
    checksum: str
    target_checksum: str
    last_modified: str
    preview: Preview

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "file",
            "source": self.source,
            "checksum": self.checksum,
            "target_checksum": self.target_checksum,
            "last_modified": self.last_modified,
            "preview": self.preview.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LocalEntry:
        """Build an entry from its YAML form.

        Raises
        ------
        ValueError
            If ``source`` or ``checksum`` is missing.
        """
        return cls(
            source=_require_str(raw, "source"),
            checksum=_require_str(raw, "checksum"),
            target_checksum=str(raw.get("target_checksum") or ""),
            last_modified=str(raw.get("last_modified") or ""),
            preview=_preview_from(raw.get("preview")),
        )


@dataclass
class GlobalEntry:
    """Registry record for a global document, keyed by its own path."""

    source: str
    folder: str | None
    checksum: str
    last_modified: str
    preview: Preview

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "document",
            "source": self.source,
            "folder": self.folder,
            "checksum": self.checksum,
            "last_modified": self.last_modified,
            "preview": self.preview.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> GlobalEntry:
        folder = raw.get("folder")
        return cls(
            source=_require_str(raw, "source"),
            folder=str(folder) if folder else None,
            checksum=_require_str(raw, "checksum"),
            last_modified=str(raw.get("last_modified") or ""),
            preview=_preview_from(raw.get("preview")),
        )


@dataclass
class FolderAggregate:
    """Combined checksum and recency of all global documents in a folder."""

    checksum: str
    last_modified: str

    def to_dict(self) -> dict[str, Any]:
        return {"checksum": self.checksum, "last_modified": self.last_modified}


def _entries_from(raw: Any, factory: Any, kind: RegistryKind) -> dict[str, Any]:
    """Load entries, dropping malformed ones with a warning."""
    if not isinstance(raw, dict):
        return {}
    entries: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            logger.warning("Dropping malformed %s registry entry %s", kind.value, key)
            continue
        try:
            entries[str(key)] = factory(value)
        except ValueError as exc:
            logger.warning("Dropping malformed %s registry entry %s: %s", kind.value, key, exc)
    return entries


@dataclass
class LocalRegistry:
    """Local collection: target path → :class:`LocalEntry`."""

    meta: RegistryMeta = field(default_factory=RegistryMeta)
    contexts: dict[str, LocalEntry] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "contexts": {key: entry.to_dict() for key, entry in self.contexts.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LocalRegistry:
        return cls(
            meta=RegistryMeta.from_dict(raw.get("meta")),
            contexts=_entries_from(raw.get("contexts"), LocalEntry.from_dict, RegistryKind.LOCAL),
        )


@dataclass
class GlobalRegistry:
    """Global collection: document path → :class:`GlobalEntry`, plus folders."""

    meta: RegistryMeta = field(default_factory=RegistryMeta)
    contexts: dict[str, GlobalEntry] = field(default_factory=dict)
    folders: dict[str, FolderAggregate] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "contexts": {key: entry.to_dict() for key, entry in self.contexts.items()},
            "folders": {name: agg.to_dict() for name, agg in self.folders.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> GlobalRegistry:
        folders: dict[str, FolderAggregate] = {}
        raw_folders = raw.get("folders")
        if isinstance(raw_folders, dict):
            for name, value in raw_folders.items():
                if isinstance(value, dict):
                    folders[str(name)] = FolderAggregate(
                        checksum=str(value.get("checksum") or ""),
                        last_modified=str(value.get("last_modified") or ""),
                    )
        return cls(
            meta=RegistryMeta.from_dict(raw.get("meta")),
            contexts=_entries_from(
                raw.get("contexts"), GlobalEntry.from_dict, RegistryKind.GLOBAL
            ),
            folders=folders,
        )


Registry = Union[LocalRegistry, GlobalRegistry]

_REGISTRY_TYPES: dict[RegistryKind, type[LocalRegistry] | type[GlobalRegistry]] = {
    RegistryKind.LOCAL: LocalRegistry,
    RegistryKind.GLOBAL: GlobalRegistry,
}


def dump_registry(registry: Registry) -> str:
    """Serialize *registry* to YAML with a stable key order."""
    return yaml.safe_dump(
        registry.to_dict(),
        sort_keys=True,
        allow_unicode=True,
        default_flow_style=False,
    )


class RegistryStore:
    """Reads and writes the registry files of one project.

    Each ``read`` → mutate → ``write`` cycle is a critical section per
    collection.  No locking is done; callers must not run two syncs against
    the same project at once.
    """

    def __init__(self, project_root: Path, directory: str = "ctx") -> None:
        self.project_root = project_root
        self.directory = directory.strip("/")

    def path_for(self, kind: RegistryKind) -> Path:
        return self.project_root / self.directory / kind.filename

    def read(self, kind: RegistryKind) -> Registry:
        """Read the *kind* registry, or a fresh empty one if unavailable."""
        registry_type = _REGISTRY_TYPES[kind]
        path = self.path_for(kind)
        if not path.is_file():
            return registry_type()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Cannot read %s, starting from an empty registry: %s", path, exc)
            return registry_type()

        if data is None:
            return registry_type()
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping at top level", path)
            return registry_type()

        return registry_type.from_dict(data)

    def read_local(self) -> LocalRegistry:
        registry = self.read(RegistryKind.LOCAL)
        assert isinstance(registry, LocalRegistry)
        return registry

    def read_global(self) -> GlobalRegistry:
        registry = self.read(RegistryKind.GLOBAL)
        assert isinstance(registry, GlobalRegistry)
        return registry

    def write(self, kind: RegistryKind, registry: Registry) -> Path:
        """Stamp ``last_synced`` and write *registry*.

        Raises
        ------
        RegistryWriteError
            If the file cannot be written.
        """
        if not isinstance(registry, _REGISTRY_TYPES[kind]):
            msg = f"Cannot write {type(registry).__name__} as the {kind.value} registry"
            raise TypeError(msg)

        registry.meta.last_synced = utc_now()
        path = self.path_for(kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dump_registry(registry), encoding="utf-8")
        except OSError as exc:
            msg = f"Failed to write {path}: {exc}"
            raise RegistryWriteError(msg) from exc

        logger.debug("Wrote %s registry with %d entries", kind.value, len(registry.contexts))
        return path


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def read_local_registry(project_root: Path, directory: str = "ctx") -> LocalRegistry:
    return RegistryStore(project_root, directory).read_local()


def read_global_registry(project_root: Path, directory: str = "ctx") -> GlobalRegistry:
    return RegistryStore(project_root, directory).read_global()


def write_local_registry(
    project_root: Path, registry: LocalRegistry, directory: str = "ctx"
) -> Path:
    """Write the local registry of *project_root*.

    Raises
    ------
    RegistryWriteError
        If the file cannot be written.
    """
    return RegistryStore(project_root, directory).write(RegistryKind.LOCAL, registry)


def write_global_registry(
    project_root: Path, registry: GlobalRegistry, directory: str = "ctx"
) -> Path:
    return RegistryStore(project_root, directory).write(RegistryKind.GLOBAL, registry)
