#!/usr/bin/env python3
"""
Aggregator Module

Groups match records by logical identity rather than by path: every
node_modules folder on the disk collapses into one "node_modules" group,
every user's trash into one ".Trash" group, and so on.
"""

import os
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from artifact_catalog import PatternKind
from pattern_scanner import MatchRecord

# Multi-segment identities whose last path component alone is ambiguous
DEFAULT_GROUP_KEY_RULES: tuple[tuple[str, str], ...] = (
    ("/Library/Caches", "Library/Caches"),
    ("/.Trash", ".Trash"),
    ("/vendor/bundle", "vendor/bundle"),
    ("/Library/Developer/Xcode/DerivedData", "Xcode/DerivedData"),
    ("/.cache", ".cache"),
    ("/.local/share/Trash", ".local/share/Trash"),
)


@dataclass
class GroupAggregate:
    """Running totals for one logical group"""

    key: str
    total_size_kb: int = 0
    member_count: int = 0
    member_paths: list[str] = field(default_factory=list)
    records: list[MatchRecord] = field(default_factory=list, repr=False)

    def add(self, record: MatchRecord):
        self.total_size_kb += record.size_kb
        self.member_count += 1
        self.member_paths.append(record.path)
        self.records.append(record)


def logical_group_key(
    record: MatchRecord, rules: Sequence[tuple[str, str]] = DEFAULT_GROUP_KEY_RULES
) -> str:
    """Derive the aggregation key for a record

    Precedence: an explicit group_key on the matching pattern, then the
    glob of wildcard file patterns, then the multi-segment suffix rules,
    then the glob of wildcard directory patterns (so all *.egg-info folders
    group together), then the last path component.
    """
    pattern = record.pattern
    if pattern is not None and pattern.group_key:
        return pattern.group_key

    if pattern is not None and pattern.kind is PatternKind.FILE_GLOB and pattern.is_glob:
        return pattern.name

    path = record.path.rstrip("/") or "/"
    for suffix, key in rules:
        if path.endswith(suffix):
            return key

    if pattern is not None and pattern.is_glob:
        return pattern.name

    return os.path.basename(path) or path


def aggregate(
    records: Iterable[MatchRecord], rules: Optional[Sequence[tuple[str, str]]] = None
) -> list[GroupAggregate]:
    """Fold records into one GroupAggregate per logical key

    The result order is unspecified; use ranker.rank to order it.
    """
    rules = DEFAULT_GROUP_KEY_RULES if rules is None else tuple(rules)
    groups: dict[str, GroupAggregate] = {}
    for record in records:
        key = logical_group_key(record, rules)
        group = groups.get(key)
        if group is None:
            group = groups[key] = GroupAggregate(key=key)
        group.add(record)
    return list(groups.values())


def total_size_kb(groups: Iterable[GroupAggregate]) -> int:
    return sum(g.total_size_kb for g in groups)


def total_members(groups: Iterable[GroupAggregate]) -> int:
    return sum(g.member_count for g in groups)
