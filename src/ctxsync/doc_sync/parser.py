"""Context document parser: frontmatter and legacy YAML metadata extraction.

Two on-disk formats are understood:

* **Markdown** (``.md``, ``.markdown``): a YAML frontmatter block delimited
  by ``---`` lines, followed by a free-form body.
* **Legacy YAML** (``.yml``, ``.yaml``): the whole file is one mapping with
  a nested ``meta`` section.  It never has a body.

Both normalize into the same :class:`Document` record.  Raw YAML data never
leaves this module.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

import yaml

from ctxsync.errors import ConfigError, DocumentError, ParseError, SchemaError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_VERSION = "1.0.0"

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
YAML_EXTENSIONS = frozenset({".yml", ".yaml"})

# Header keys accepted for the same field, first match wins.
_VERSION_KEYS = ("version", "schema_version", "schemaVersion")
_NOT_WHEN_KEYS = ("not_when", "notWhen")

_FRONTMATTER_OPEN_RE = re.compile(r"\A---[ \t]*\r?\n")
_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


class DocumentFormat(enum.Enum):
    """On-disk format of a context document."""

    MARKDOWN = "markdown"
    YAML = "yaml"


@dataclass(frozen=True)
class Document:
    """A normalized context document."""

    path: str
    format: DocumentFormat
    schema_version: str
    what: str
    when: list[str]
    not_when: list[str] | None = None
    future: list[Any] | None = None
    body: str = ""
    target: str | None = None


@dataclass(frozen=True)
class Preview:
    """Denormalized ``what``/``when``/``not_when`` copy kept in the registry."""

    what: str
    when: list[str]
    not_when: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"what": self.what, "when": list(self.when)}
        if self.not_when is not None:
            data["not_when"] = list(self.not_when)
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Preview:
        return cls(
            what=_as_text(raw.get("what")),
            when=_as_list(raw.get("when")) or [],
            not_when=_as_list(raw.get("not_when")),
        )


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_document`."""

    valid: bool
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return ""


def _as_version(value: Any) -> str:
    # YAML reads ``version: 1.0`` as a float.
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def _as_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [str(item) for item in value if item is not None]


def _first_present(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _as_target(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _load_mapping(text: str, what: str) -> dict[str, Any]:
    """Parse *text* as a YAML mapping, raising :class:`ParseError` otherwise."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Malformed YAML in {what}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a mapping in {what}, got {type(data).__name__}"
        raise ParseError(msg)
    return data


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split Markdown *content* into its frontmatter mapping and body.

    Content that does not open with a ``---`` line has no frontmatter and
    yields an empty mapping with the whole text as body.

    Raises
    ------
    ParseError
        If the frontmatter block is unterminated or is not a YAML mapping.
    """
    if not _FRONTMATTER_OPEN_RE.match(content):
        return {}, content

    match = _FRONTMATTER_RE.match(content)
    if match is None:
        raise ParseError("Unterminated frontmatter block (missing closing '---')")

    header = _load_mapping(match.group(1), "frontmatter")
    return header, content[match.end():]


def _parse_markdown(path: str, content: str) -> Document:
    header, body = split_frontmatter(content)
    version = _as_version(_first_present(header, _VERSION_KEYS))
    return Document(
        path=path,
        format=DocumentFormat.MARKDOWN,
        schema_version=version or DEFAULT_SCHEMA_VERSION,
        what=_as_text(header.get("what")),
        when=_as_list(header.get("when")) or [],
        not_when=_as_list(_first_present(header, _NOT_WHEN_KEYS)),
        future=header.get("future") if isinstance(header.get("future"), list) else None,
        body=body.strip(),
        target=_as_target(header.get("target")),
    )


def _parse_yaml(path: str, content: str) -> Document:
    data = _load_mapping(content, "YAML document")
    if not data:
        raise ParseError("Empty YAML document")

    meta = data.get("meta")
    if not isinstance(meta, dict):
        meta = {}

    version = _as_version(
        _first_present(meta, _VERSION_KEYS) or _first_present(data, _VERSION_KEYS)
    )
    target = _as_target(meta.get("target")) or _as_target(data.get("target"))
    return Document(
        path=path,
        format=DocumentFormat.YAML,
        schema_version=version or DEFAULT_SCHEMA_VERSION,
        what=_as_text(data.get("what")),
        when=_as_list(data.get("when")) or [],
        not_when=_as_list(_first_present(data, _NOT_WHEN_KEYS)),
        future=data.get("future") if isinstance(data.get("future"), list) else None,
        body="",
        target=target,
    )


def document_format(path: str | Path) -> DocumentFormat:
    """Return the format for *path* based on its extension.

    Raises
    ------
    ConfigError
        If the extension is not a supported context document format.
    """
    ext = PurePosixPath(str(path).replace("\\", "/")).suffix.lower()
    if ext in MARKDOWN_EXTENSIONS:
        return DocumentFormat.MARKDOWN
    if ext in YAML_EXTENSIONS:
        return DocumentFormat.YAML
    msg = f"Unsupported context file format: {ext or '(none)'}"
    raise ConfigError(msg)


def parse_document(path: str | Path, content: str) -> Document:
    """Parse *content* of the document at *path* into a :class:`Document`.

    Raises
    ------
    ConfigError
        For unsupported file extensions.
    ParseError
        For malformed structured blocks.
    """
    fmt = document_format(path)
    path_str = str(path).replace("\\", "/")
    if fmt is DocumentFormat.MARKDOWN:
        return _parse_markdown(path_str, content)
    return _parse_yaml(path_str, content)


def extract(path: str | Path, content: str) -> Document | DocumentError:
    """Like :func:`parse_document`, but return the error instead of raising."""
    try:
        return parse_document(path, content)
    except DocumentError as exc:
        logger.debug("Cannot parse %s: %s", path, exc.reason)
        return exc


# ---------------------------------------------------------------------------
# Validation and previews
# ---------------------------------------------------------------------------


def validate_document(document: Document) -> ValidationResult:
    """Check required fields, reporting every violation found."""
    errors: list[str] = []

    if not document.schema_version:
        errors.append("Missing required field: version")

    if not document.what.strip():
        errors.append("Missing required field: what")

    if not document.when:
        errors.append("Missing or empty required field: when")

    if document.format is DocumentFormat.YAML and not document.target:
        errors.append("Missing required field: meta.target")

    return ValidationResult(valid=not errors, errors=errors)


def require_valid(document: Document) -> Document:
    """Return *document* unchanged if it passes :func:`validate_document`.

    Raises
    ------
    SchemaError
        Listing every violated requirement.
    """
    result = validate_document(document)
    if not result.valid:
        raise SchemaError(result.errors)
    return document


def extract_preview(document: Document) -> Preview:
    """Project the listing fields of a validated *document*."""
    return Preview(
        what=document.what,
        when=list(document.when),
        not_when=list(document.not_when) if document.not_when is not None else None,
    )


def extract_preview_from_raw(content: str) -> Preview | None:
    """Build a preview straight from Markdown frontmatter.

    Cheap path for global documents: only the header is inspected, and the
    required fields are re-checked here.  Returns ``None`` when the header
    is malformed or ``what``/``when`` are missing or empty.
    """
    try:
        header, _body = split_frontmatter(content)
    except ParseError:
        return None

    when = _as_list(header.get("when"))
    if not when:
        return None

    what = header.get("what")
    if not isinstance(what, str) or not what.strip():
        return None

    return Preview(
        what=what,
        when=when,
        not_when=_as_list(_first_present(header, _NOT_WHEN_KEYS)),
    )
