#!/usr/bin/env python3
"""
Artifact Catalog

The static catalog of cleanable artifact patterns (dependency folders, build
caches, trash and cache locations, logs). Patterns are loaded once from
kenosis_rules.toml and never mutated afterwards.
"""

import fnmatch
import pathlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import tomllib

# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class PatternKind(Enum):
    DIR_NAME = "dir"  # exact directory name or glob, found anywhere below the root
    FILE_GLOB = "file"  # file name or glob, found anywhere below the root
    RELATIVE_SUFFIX = "suffix"  # multi-segment directory path such as vendor/bundle
    FIXED = "fixed"  # location relative to each owner's home directory
    SYSTEM = "system"  # absolute location, only considered when elevated


class TargetAction(Enum):
    REMOVE = "remove"  # delete the match itself
    EMPTY = "empty"  # delete the contents, keep the container
    TRASH = "trash"  # relax permissions, empty, verify nothing is left
    PRUNE_OLD = "prune"  # delete files older than a number of days


DEFAULT_DIR_FLOOR_KB = 100
DEFAULT_FILE_FLOOR_KB = 0


@dataclass(frozen=True)
class ArtifactPattern:
    name: str
    kind: PatternKind
    category: str
    min_size_kb: int = 0
    action: TargetAction = TargetAction.REMOVE
    group_key: Optional[str] = None
    older_than_days: Optional[int] = None
    requires_elevated: bool = False
    description: str = ""

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(part for part in self.name.split("/") if part)

    @property
    def is_glob(self) -> bool:
        return any(ch in self.name for ch in "*?[")

    def matches_name(self, name: str) -> bool:
        """Return True if a single path component matches this pattern's name"""
        if self.kind in (PatternKind.DIR_NAME, PatternKind.FILE_GLOB):
            return fnmatch.fnmatchcase(name, self.name)
        if self.kind is PatternKind.RELATIVE_SUFFIX:
            return fnmatch.fnmatchcase(name, self.segments[0])
        return False


@dataclass(frozen=True)
class Category:
    """A cleanup category as presented to the operator"""

    key: str
    title: str
    description: str
    details: tuple[str, ...] = ()
    order: int = 100


@dataclass(frozen=True)
class Catalog:
    patterns: tuple[ArtifactPattern, ...]
    categories: dict[str, Category] = field(default_factory=dict)
    group_key_rules: tuple[tuple[str, str], ...] = ()
    protected_names: tuple[str, ...] = ()

    def category(self, key: str) -> Category:
        return self.categories.get(key) or Category(key=key, title=key, description="")

# ---------------------------------------------------------------------------
# Loading from TOML
# ---------------------------------------------------------------------------

RULES_FILE = pathlib.Path(__file__).parent / "kenosis_rules.toml"

_KIND_MAP = {kind.value: kind for kind in PatternKind}
_ACTION_MAP = {action.value: action for action in TargetAction}


class CatalogError(ValueError):
    """Raised when the rules file contains an invalid entry"""


def _parse_pattern(entry: dict) -> ArtifactPattern:
    try:
        name = entry["pattern"]
        kind = _KIND_MAP[entry["type"]]
    except KeyError as e:
        raise CatalogError(f"Invalid pattern entry {entry!r}: missing or unknown {e}") from e

    default_floor = DEFAULT_FILE_FLOOR_KB if kind is PatternKind.FILE_GLOB else DEFAULT_DIR_FLOOR_KB
    if kind in (PatternKind.FIXED, PatternKind.SYSTEM):
        default_floor = 0

    action_name = entry.get("action", "remove")
    if action_name not in _ACTION_MAP:
        raise CatalogError(f"Unknown action '{action_name}' for pattern '{name}'")
    action = _ACTION_MAP[action_name]
    if action is TargetAction.PRUNE_OLD and "older_than_days" not in entry:
        raise CatalogError(f"Pattern '{name}' uses action 'prune' without older_than_days")

    return ArtifactPattern(
        name=name,
        kind=kind,
        category=entry.get("category", "dev_artifacts"),
        min_size_kb=int(entry.get("min_size_kb", default_floor)),
        action=action,
        group_key=entry.get("group_key"),
        older_than_days=entry.get("older_than_days"),
        requires_elevated=entry.get("requires_elevated", kind is PatternKind.SYSTEM),
        description=entry.get("description", ""),
    )


def load_catalog(path: pathlib.Path = RULES_FILE) -> Catalog:
    """Load artifact patterns, categories and grouping rules from a TOML file"""
    with path.open("rb") as f:
        data = tomllib.load(f)

    patterns = tuple(_parse_pattern(entry) for entry in data.get("patterns", []))

    categories: dict[str, Category] = {}
    for idx, entry in enumerate(data.get("categories", [])):
        categories[entry["key"]] = Category(
            key=entry["key"],
            title=entry.get("title", entry["key"]),
            description=entry.get("description", ""),
            details=tuple(entry.get("details", [])),
            order=entry.get("order", idx),
        )

    group_key_rules = tuple((rule["suffix"], rule["key"]) for rule in data.get("group_keys", []))
    protected = tuple(data.get("protected", {}).get("names", []))

    return Catalog(
        patterns=patterns,
        categories=categories,
        group_key_rules=group_key_rules,
        protected_names=protected,
    )
