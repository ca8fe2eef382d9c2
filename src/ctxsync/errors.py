"""Exception taxonomy for the reconciliation engine."""

from __future__ import annotations


class CtxSyncError(Exception):
    """Base class for all ctxsync errors."""


class DocumentError(CtxSyncError):
    """A single context document could not be used.

    Never fatal for a batch: scanners, the extractor and the reconciler
    collect these and move on to the next document.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ParseError(DocumentError):
    """Raised when a structured header block is malformed."""


class SchemaError(DocumentError):
    """Raised when a parsed document misses required fields."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(", ".join(errors))
        self.errors = list(errors)


class ConfigError(DocumentError):
    """Raised for a document with an unsupported file extension."""


class RegistryWriteError(CtxSyncError):
    """Raised when a registry file cannot be written."""
