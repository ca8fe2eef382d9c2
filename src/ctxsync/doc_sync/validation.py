"""Validator: cross-check registry entries against the filesystem.

Each entry goes through a fixed sequence of checks that stops at the first
failure:

1. document exists                → error   ``document-missing``
2. document parses and validates  → error   ``schema-invalid``
3. target exists (local only)     → warning ``target-missing``
4. document checksum unchanged    → warning ``document-changed``
5. target checksum unchanged      → warning ``target-changed`` (local only)

The validator only reads; it never touches the registry.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ctxsync.config import load_config
from ctxsync.doc_sync.fingerprint import fingerprint_file
from ctxsync.doc_sync.parser import parse_document, validate_document
from ctxsync.doc_sync.paths import resolve_key_path
from ctxsync.doc_sync.registry import RegistryStore
from ctxsync.errors import DocumentError

if TYPE_CHECKING:
    from pathlib import Path

    from ctxsync.config import Config
    from ctxsync.doc_sync.registry import GlobalEntry, LocalEntry

logger = logging.getLogger(__name__)


class CheckType(enum.Enum):
    """Category of a validation check."""

    SCHEMA = "schema"
    EXISTENCE = "existence"
    CHECKSUM = "checksum"


class IssueCode(enum.Enum):
    """Typed drift classification."""

    DOCUMENT_MISSING = "document-missing"
    SCHEMA_INVALID = "schema-invalid"
    TARGET_MISSING = "target-missing"
    DOCUMENT_CHANGED = "document-changed"
    TARGET_CHANGED = "target-changed"


class IssueStatus(enum.Enum):
    """Severity of a validation issue."""

    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationCheck:
    """Result of one check on one entry."""

    type: CheckType
    passed: bool
    code: IssueCode | None = None
    message: str | None = None
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "passed": self.passed}
        if self.code is not None:
            data["code"] = self.code.value
        if self.message is not None:
            data["message"] = self.message
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        return data


@dataclass
class ValidationIssue:
    """A registry entry that failed one of its checks."""

    document_path: str
    status: IssueStatus
    checks: list[ValidationCheck] = field(default_factory=list)
    target_path: str | None = None

    @property
    def code(self) -> IssueCode | None:
        """Code of the failing check."""
        for check in self.checks:
            if not check.passed:
                return check.code
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "document_path": self.document_path,
            "status": self.status.value,
            "checks": [check.to_dict() for check in self.checks],
        }
        if self.target_path is not None:
            data["target_path"] = self.target_path
        return data


@dataclass
class ValidationReport:
    """Totals and issues across all validated entries."""

    total: int = 0
    valid: int = 0
    warnings: int = 0
    errors: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)

    def add(self, issue: ValidationIssue | None) -> None:
        self.total += 1
        if issue is None:
            self.valid += 1
            return
        self.issues.append(issue)
        if issue.status is IssueStatus.ERROR:
            self.errors += 1
        else:
            self.warnings += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "valid": self.valid,
                "warnings": self.warnings,
                "errors": self.errors,
            },
            "issues": [issue.to_dict() for issue in self.issues],
        }


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def _missing_document_check(source: str, label: str) -> ValidationCheck:
    return ValidationCheck(
        type=CheckType.EXISTENCE,
        passed=False,
        code=IssueCode.DOCUMENT_MISSING,
        message=f"{label} not found: {source}",
        suggestion="Remove entry from registry or restore file",
    )


def _schema_check(path: Path, source: str, suggestion: str) -> ValidationCheck:
    """Re-read and re-validate the document at *path*."""
    try:
        content = path.read_bytes().decode("utf-8")
        document = parse_document(source, content)
    except DocumentError as exc:
        return ValidationCheck(
            type=CheckType.SCHEMA,
            passed=False,
            code=IssueCode.SCHEMA_INVALID,
            message=f"Failed to parse {source}: {exc.reason}",
            suggestion="Check YAML/Markdown syntax",
        )
    except (OSError, UnicodeDecodeError) as exc:
        return ValidationCheck(
            type=CheckType.SCHEMA,
            passed=False,
            code=IssueCode.SCHEMA_INVALID,
            message=f"Failed to read {source}: {exc}",
            suggestion="Check file permissions and encoding",
        )

    result = validate_document(document)
    if not result.valid:
        return ValidationCheck(
            type=CheckType.SCHEMA,
            passed=False,
            code=IssueCode.SCHEMA_INVALID,
            message=f"Schema validation failed: {', '.join(result.errors)}",
            suggestion=suggestion,
        )
    return ValidationCheck(type=CheckType.SCHEMA, passed=True)


def _document_changed_check(label: str) -> ValidationCheck:
    return ValidationCheck(
        type=CheckType.CHECKSUM,
        passed=False,
        code=IssueCode.DOCUMENT_CHANGED,
        message=f"{label} has changed since last sync",
        suggestion="Run `ctxsync sync` to update registry",
    )


# ---------------------------------------------------------------------------
# Per-entry validation
# ---------------------------------------------------------------------------


def validate_local_entry(
    project_root: Path,
    target_path: str,
    entry: LocalEntry,
) -> ValidationIssue | None:
    """Validate one local registry entry.

    Returns ``None`` when every check passes, otherwise the issue for the
    first failing check.
    """
    checks: list[ValidationCheck] = []
    document_abs = resolve_key_path(project_root, entry.source)
    target_abs = resolve_key_path(project_root, target_path)

    def issue(status: IssueStatus) -> ValidationIssue:
        return ValidationIssue(
            document_path=entry.source,
            target_path=target_path,
            status=status,
            checks=checks,
        )

    if not document_abs.is_file():
        checks.append(_missing_document_check(entry.source, "Context file"))
        return issue(IssueStatus.ERROR)

    schema = _schema_check(document_abs, entry.source, "Fix required fields in context file")
    checks.append(schema)
    if not schema.passed:
        return issue(IssueStatus.ERROR)

    if not target_abs.exists():
        checks.append(
            ValidationCheck(
                type=CheckType.EXISTENCE,
                passed=False,
                code=IssueCode.TARGET_MISSING,
                message=f"Target file not found: {target_path}",
                suggestion="Target file may have been moved or deleted",
            )
        )
        return issue(IssueStatus.WARNING)
    checks.append(ValidationCheck(type=CheckType.EXISTENCE, passed=True))

    if fingerprint_file(document_abs) != entry.checksum:
        checks.append(_document_changed_check("Context file"))
        return issue(IssueStatus.WARNING)

    # Directory targets carry no content fingerprint.
    current_target = fingerprint_file(target_abs) if target_abs.is_file() else ""
    if current_target != entry.target_checksum:
        checks.append(
            ValidationCheck(
                type=CheckType.CHECKSUM,
                passed=False,
                code=IssueCode.TARGET_CHANGED,
                message="Target file has changed since last sync",
                suggestion="Review changes and update context if needed, then run `ctxsync sync`",
            )
        )
        return issue(IssueStatus.WARNING)

    return None


def validate_global_entry(
    project_root: Path,
    document_path: str,
    entry: GlobalEntry,
) -> ValidationIssue | None:
    """Validate one global registry entry (no target checks)."""
    checks: list[ValidationCheck] = []
    document_abs = resolve_key_path(project_root, entry.source)

    def issue(status: IssueStatus) -> ValidationIssue:
        return ValidationIssue(document_path=entry.source, status=status, checks=checks)

    if not document_abs.is_file():
        checks.append(_missing_document_check(entry.source, "Document file"))
        return issue(IssueStatus.ERROR)

    schema = _schema_check(document_abs, entry.source, "Fix frontmatter fields in document")
    checks.append(schema)
    if not schema.passed:
        return issue(IssueStatus.ERROR)
    checks.append(ValidationCheck(type=CheckType.EXISTENCE, passed=True))

    if fingerprint_file(document_abs) != entry.checksum:
        checks.append(_document_changed_check("Document"))
        return issue(IssueStatus.WARNING)

    logger.debug("Global entry %s is valid", document_path)
    return None


# ---------------------------------------------------------------------------
# Project-wide aggregation
# ---------------------------------------------------------------------------


def _unexpected_issue(source: str, target_path: str | None, exc: Exception) -> ValidationIssue:
    return ValidationIssue(
        document_path=source,
        target_path=target_path,
        status=IssueStatus.ERROR,
        checks=[
            ValidationCheck(
                type=CheckType.SCHEMA,
                passed=False,
                code=IssueCode.SCHEMA_INVALID,
                message=f"Unexpected validation error: {exc}",
            )
        ],
    )


def validate_project(
    project_root: Path,
    config: Config | None = None,
    *,
    local: bool = True,
    global_: bool = True,
) -> ValidationReport:
    """Validate every entry of the local and/or global registries.

    An unexpected exception while validating one entry becomes an error
    issue for that entry; the rest of the report is still produced.
    """
    config = config or load_config(project_root)
    store = RegistryStore(project_root, config.global_docs.directory)
    report = ValidationReport()

    if local:
        for target_path, local_entry in sorted(store.read_local().contexts.items()):
            try:
                issue = validate_local_entry(project_root, target_path, local_entry)
            except Exception as exc:
                logger.warning("Unexpected error validating %s: %s", local_entry.source, exc)
                issue = _unexpected_issue(local_entry.source, target_path, exc)
            report.add(issue)

    if global_:
        for document_path, global_entry in sorted(store.read_global().contexts.items()):
            try:
                issue = validate_global_entry(project_root, document_path, global_entry)
            except Exception as exc:
                logger.warning("Unexpected error validating %s: %s", global_entry.source, exc)
                issue = _unexpected_issue(global_entry.source, None, exc)
            report.add(issue)

    return report
