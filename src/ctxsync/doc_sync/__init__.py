"""Doc Sync domain: scan, parse, fingerprint, reconcile and validate context documents."""

from ctxsync.doc_sync.engine import (
    ReconcileResult,
    SyncResult,
    compute_folders,
    reconcile_global,
    reconcile_local,
    sync,
)
from ctxsync.doc_sync.fingerprint import (
    combine_fingerprints,
    fingerprint,
    fingerprint_file,
)
from ctxsync.doc_sync.parser import (
    Document,
    DocumentFormat,
    Preview,
    ValidationResult,
    extract,
    extract_preview,
    extract_preview_from_raw,
    parse_document,
    require_valid,
    validate_document,
)
from ctxsync.doc_sync.registry import (
    FolderAggregate,
    GlobalEntry,
    GlobalRegistry,
    LocalEntry,
    LocalRegistry,
    RegistryKind,
    RegistryStore,
    read_global_registry,
    read_local_registry,
    write_global_registry,
    write_local_registry,
)
from ctxsync.doc_sync.scanner import (
    ScannedDocument,
    scan,
    scan_global,
    scan_local,
)
from ctxsync.doc_sync.validation import (
    CheckType,
    IssueCode,
    IssueStatus,
    ValidationCheck,
    ValidationIssue,
    ValidationReport,
    validate_global_entry,
    validate_local_entry,
    validate_project,
)

__all__ = [
    "CheckType",
    "Document",
    "DocumentFormat",
    "FolderAggregate",
    "GlobalEntry",
    "GlobalRegistry",
    "IssueCode",
    "IssueStatus",
    "LocalEntry",
    "LocalRegistry",
    "Preview",
    "ReconcileResult",
    "RegistryKind",
    "RegistryStore",
    "ScannedDocument",
    "SyncResult",
    "ValidationCheck",
    "ValidationIssue",
    "ValidationReport",
    "ValidationResult",
    "combine_fingerprints",
    "compute_folders",
    "extract",
    "extract_preview",
    "extract_preview_from_raw",
    "fingerprint",
    "fingerprint_file",
    "parse_document",
    "read_global_registry",
    "read_local_registry",
    "reconcile_global",
    "reconcile_local",
    "require_valid",
    "scan",
    "scan_global",
    "scan_local",
    "sync",
    "validate_document",
    "validate_global_entry",
    "validate_local_entry",
    "validate_project",
    "write_global_registry",
    "write_local_registry",
]
