"""Project configuration: ``ctx.config.yaml`` loading and defaults."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "ctx.config.yaml"
CONFIG_VERSION = "0.1.0"
DEFAULT_EDITOR = "claude-code"

_DEFAULT_LOCAL_PATTERNS = ("**/*.ctx.md", "**/ctx.md")
_DEFAULT_LOCAL_IGNORE = ("node_modules/**", "dist/**", "build/**", ".git/**")
_DEFAULT_GLOBAL_DIRECTORY = "ctx"
_DEFAULT_GLOBAL_PATTERNS = ("**/*.md",)
_DEFAULT_GLOBAL_IGNORE = ("templates/**", "README.md", "*-context-registry.yml")


@dataclass
class LocalScope:
    """Where local context documents live."""

    patterns: list[str] = field(default_factory=lambda: list(_DEFAULT_LOCAL_PATTERNS))
    ignore: list[str] = field(default_factory=lambda: list(_DEFAULT_LOCAL_IGNORE))


@dataclass
class GlobalScope:
    """Where global context documents live.

    ``ignore`` patterns are relative to ``directory``.
    """

    directory: str = _DEFAULT_GLOBAL_DIRECTORY
    patterns: list[str] = field(default_factory=lambda: list(_DEFAULT_GLOBAL_PATTERNS))
    ignore: list[str] = field(default_factory=lambda: list(_DEFAULT_GLOBAL_IGNORE))


@dataclass
class Config:
    """Engine configuration supplied by ``ctx.config.yaml``."""

    version: str = CONFIG_VERSION
    editor: str = DEFAULT_EDITOR
    local_docs: LocalScope = field(default_factory=LocalScope)
    global_docs: GlobalScope = field(default_factory=GlobalScope)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "editor": self.editor,
            "local": {
                "patterns": list(self.local_docs.patterns),
                "ignore": list(self.local_docs.ignore),
            },
            "global": {
                "directory": self.global_docs.directory,
                "patterns": list(self.global_docs.patterns),
                "ignore": list(self.global_docs.ignore),
            },
        }


def _as_patterns(value: Any) -> list[str]:
    """Accept a single glob or a list of globs."""
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str) and v.strip()]
    return []


def _merge_ignore(defaults: tuple[str, ...], extra: list[str]) -> list[str]:
    return list(dict.fromkeys([*defaults, *extra]))


def config_from_dict(data: dict[str, Any]) -> Config:
    """Build a :class:`Config` from parsed YAML, filling gaps with defaults.

    User ignore patterns are appended to the defaults rather than replacing
    them.
    """
    local_raw = data.get("local")
    if not isinstance(local_raw, dict):
        local_raw = {}
    global_raw = data.get("global")
    if not isinstance(global_raw, dict):
        global_raw = {}

    directory = global_raw.get("directory")
    if not isinstance(directory, str) or not directory.strip():
        directory = _DEFAULT_GLOBAL_DIRECTORY

    return Config(
        version=str(data.get("version") or CONFIG_VERSION),
        editor=str(data.get("editor") or DEFAULT_EDITOR),
        local_docs=LocalScope(
            patterns=_as_patterns(local_raw.get("patterns")) or list(_DEFAULT_LOCAL_PATTERNS),
            ignore=_merge_ignore(_DEFAULT_LOCAL_IGNORE, _as_patterns(local_raw.get("ignore"))),
        ),
        global_docs=GlobalScope(
            directory=directory.strip().strip("/") or _DEFAULT_GLOBAL_DIRECTORY,
            patterns=_as_patterns(global_raw.get("patterns")) or list(_DEFAULT_GLOBAL_PATTERNS),
            ignore=_merge_ignore(_DEFAULT_GLOBAL_IGNORE, _as_patterns(global_raw.get("ignore"))),
        ),
    )


def load_config(project_root: Path) -> Config:
    """Load ``ctx.config.yaml`` from *project_root*.

    A missing file yields the defaults.  An unreadable or malformed file is
    logged and also yields the defaults.
    """
    path = project_root / CONFIG_FILENAME
    if not path.is_file():
        return Config()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", path, exc)
        return Config()

    if data is None:
        return Config()
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a mapping at top level", path)
        return Config()

    return config_from_dict(data)


def write_default_config(project_root: Path, *, editor: str = DEFAULT_EDITOR) -> Path:
    """Write a default ``ctx.config.yaml`` and return its path."""
    path = project_root / CONFIG_FILENAME
    config = Config(editor=editor)
    path.write_text(
        yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    return path


def is_project_initialized(project_root: Path) -> bool:
    """Return True if *project_root* has a ``ctx.config.yaml``."""
    return (project_root / CONFIG_FILENAME).is_file()
