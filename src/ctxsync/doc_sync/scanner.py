"""Document scanner: discover local and global context documents.

Walks a root directory, pruning hidden and ignored directories, matches
files against path globs and reads each survivor.  Scanning is
best-effort: unreadable files are logged and skipped.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ctxsync.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannedDocument:
    """A candidate context document and its raw content."""

    absolute_path: Path
    relative_path: str  # POSIX separators
    content: str


def _is_hidden(relative_path: str) -> bool:
    """Dot-prefixed files and directories are never matched."""
    return any(part.startswith(".") for part in relative_path.split("/"))


def _is_ignored(relative_path: str, ignore: Sequence[str]) -> bool:
    for pattern in ignore:
        if fnmatch.fnmatchcase(relative_path, pattern):
            return True
        # ``**/`` also matches zero directories.
        if pattern.startswith("**/") and fnmatch.fnmatchcase(relative_path, pattern[3:]):
            return True
    return False


def _as_list(patterns: str | Sequence[str]) -> list[str]:
    if isinstance(patterns, str):
        return [patterns]
    return list(patterns)


def _read_text(path: Path) -> str:
    # Decode raw bytes so line endings survive and the content fingerprints
    # the same as the file on disk.
    return path.read_bytes().decode("utf-8")


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a path glob into a regex over POSIX relative paths.

    ``*`` and ``?`` stay inside one path segment, ``**`` crosses segments
    and ``**/`` also matches zero directories.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def _walk(root: Path, ignore: Sequence[str]) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_path, path)`` for every visible, non-ignored file.

    Hidden and ignored directories are pruned before they are entered.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        base = current.relative_to(root).as_posix()
        prefix = "" if base == "." else f"{base}/"
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not name.startswith(".") and not _is_ignored(f"{prefix}{name}/", ignore)
        )
        for name in filenames:
            relative = f"{prefix}{name}"
            if name.startswith(".") or _is_ignored(relative, ignore):
                continue
            yield relative, current / name


def scan(
    root: Path,
    patterns: str | Sequence[str],
    ignore: Sequence[str] = (),
) -> list[ScannedDocument]:
    """Find files under *root* matching any of *patterns*.

    Parameters
    ----------
    root:
        Directory to scan.  A missing directory yields an empty list.
    patterns:
        One glob or a list of globs, relative to *root*.
    ignore:
        ``fnmatch`` patterns matched against the POSIX path relative to
        *root*.  A directory matching an ignore rule is not descended into.

    Returns
    -------
    list[ScannedDocument]
        Union of all matches, deduplicated by relative path and sorted by
        it.
    """
    if not root.is_dir():
        return []

    compiled = [_compile_pattern(p.lstrip("/")) for p in _as_list(patterns) if p.lstrip("/")]
    if not compiled:
        return []

    found: dict[str, Path] = {}
    for relative, path in _walk(root, ignore):
        if any(regex.fullmatch(relative) for regex in compiled):
            found[relative] = path

    documents: list[ScannedDocument] = []
    for relative in sorted(found):
        path = found[relative]
        try:
            content = _read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", relative, exc)
            continue
        documents.append(
            ScannedDocument(absolute_path=path, relative_path=relative, content=content)
        )
    return documents


def scan_local(project_root: Path, config: Config) -> list[ScannedDocument]:
    """Scan the project for local context documents.

    The global directory is always excluded so a global document is never
    mistaken for a local one.
    """
    directory = config.global_docs.directory.strip("/")
    ignore = [*config.local_docs.ignore, f"{directory}/**"]
    documents = scan(project_root, config.local_docs.patterns, ignore)
    logger.debug("Found %d local context document(s)", len(documents))
    return documents


def scan_global(project_root: Path, config: Config) -> list[ScannedDocument]:
    """Scan the global directory for global context documents.

    Ignore rules are rooted at the global directory.  Returned relative
    paths are relative to *project_root* (``ctx/rules/api.md``).
    """
    directory = config.global_docs.directory.strip("/")
    global_root = project_root / directory
    documents = [
        dataclasses.replace(doc, relative_path=f"{directory}/{doc.relative_path}")
        for doc in scan(global_root, config.global_docs.patterns, config.global_docs.ignore)
    ]
    logger.debug("Found %d global context document(s) in %s", len(documents), directory)
    return documents
