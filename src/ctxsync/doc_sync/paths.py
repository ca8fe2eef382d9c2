"""Path normalization: registry keys, target inference, folder extraction.

Registry keys are POSIX-style and rooted at the project: ``/src/utils/url.ts``
for a file, ``/src/utils`` for a directory, ``/`` for the project itself.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Suffixes that mark a file as documentation for a sibling artifact.
CONTEXT_SUFFIXES = (".ctx.md", ".ctx.markdown", ".ctx.yml", ".ctx.yaml")

# A document with one of these names describes its containing directory.
DIRECTORY_CONTEXT_NAMES = frozenset({"ctx.md", "ctx.markdown", "ctx.yml", "ctx.yaml"})


def _segments(path: str) -> list[str]:
    return [p for p in path.replace("\\", "/").split("/") if p and p != "."]


def to_registry_key(path: str) -> str:
    """Normalize *path* into a registry key.

    >>> to_registry_key("src/utils/url.ts")
    '/src/utils/url.ts'
    >>> to_registry_key("src/services/")
    '/src/services'
    """
    return "/" + "/".join(_segments(path))


def resolve_key_path(project_root: Path, key: str) -> Path:
    """Return the filesystem location of a registry *key*."""
    parts = _segments(key)
    return project_root.joinpath(*parts) if parts else project_root


def is_context_document_name(name: str) -> bool:
    """Return True if a file called *name* is itself a context document."""
    return name in DIRECTORY_CONTEXT_NAMES or name.endswith(CONTEXT_SUFFIXES)


def _strip_context_suffix(name: str) -> str:
    for suffix in CONTEXT_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return PurePosixPath(name).stem


def base_target_key(relative_doc_path: str) -> str:
    """Infer the target key of a local document from its own path.

    ``src/a/b.ctx.md`` documents ``/src/a/b`` (artifact extension not yet
    resolved); ``src/a/ctx.md`` documents the directory ``/src/a``.
    """
    doc = PurePosixPath(relative_doc_path.replace("\\", "/"))
    if doc.name in DIRECTORY_CONTEXT_NAMES:
        return to_registry_key(str(doc.parent))
    return to_registry_key(str(doc.parent / _strip_context_suffix(doc.name)))


def resolve_artifact_key(project_root: Path, base_key: str) -> str:
    """Resolve the artifact extension for an inferred *base_key*.

    If *base_key* already names an existing file or directory it is kept.
    Otherwise sibling files named ``<base>.<ext>`` are considered and the
    lexicographically first one wins, so ``b.js`` beats ``b.ts``.  Falls
    back to *base_key* when nothing matches.
    """
    candidate = resolve_key_path(project_root, base_key)
    if candidate.exists():
        return base_key

    directory = candidate.parent
    if not directory.is_dir():
        return base_key

    stem = candidate.name
    try:
        matches = sorted(
            p.name
            for p in directory.iterdir()
            if p.is_file()
            and PurePosixPath(p.name).stem == stem
            and p.name != stem
            and not is_context_document_name(p.name)
        )
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return base_key

    if not matches:
        return base_key
    return to_registry_key(str(PurePosixPath(base_key).parent / matches[0]))


def infer_target_key(project_root: Path, relative_doc_path: str) -> str:
    """Infer and resolve the target key for a local document."""
    return resolve_artifact_key(project_root, base_target_key(relative_doc_path))


def _strip_directory(relative_path: str, directory: str) -> list[str]:
    parts = _segments(relative_path)
    dir_parts = _segments(directory)
    if dir_parts and parts[: len(dir_parts)] == dir_parts:
        return parts[len(dir_parts):]
    return parts


def extract_folder(relative_path: str, directory: str) -> str | None:
    """Return the folder of a global document, or None at the root.

    ``ctx/rules/api.md`` → ``"rules"``; ``ctx/overview.md`` → ``None``.
    """
    parts = _strip_directory(relative_path, directory)
    if len(parts) <= 1:
        return None
    return parts[0]


def global_registry_key(relative_path: str, directory: str) -> str:
    """Return the registry key of a global document.

    ``ctx/rules/api.md`` → ``/rules/api.md``.
    """
    return "/" + "/".join(_strip_directory(relative_path, directory))
