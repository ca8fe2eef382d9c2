"""Content fingerprints for change detection."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


def fingerprint(data: bytes | str) -> str:
    """Return the MD5 hex digest of *data*.

    ``str`` input is encoded as UTF-8 first.  The digest is only used to
    notice that content changed; it is not a security boundary.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def fingerprint_file(path: Path) -> str:
    """Return the digest of the raw bytes of *path*.

    Raises
    ------
    OSError
        If the file cannot be read.
    """
    return fingerprint(path.read_bytes())


def combine_fingerprints(digests: Iterable[str]) -> str:
    """Fold member digests into one, independent of their order."""
    return fingerprint("".join(sorted(digests)))
