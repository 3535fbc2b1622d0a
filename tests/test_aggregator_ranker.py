from __future__ import annotations

import math

import pytest

from aggregator import GroupAggregate, aggregate, logical_group_key, total_members, total_size_kb
from artifact_catalog import ArtifactPattern, PatternKind
from pattern_scanner import MatchRecord
from ranker import Tier, clamp_display_limit, rank, tier_for_rank

NODE_MODULES = ArtifactPattern(
    name="node_modules", kind=PatternKind.DIR_NAME, category="dev_artifacts", min_size_kb=100
)
PYC = ArtifactPattern(name="*.pyc", kind=PatternKind.FILE_GLOB, category="dev_artifacts")
MB = 1024


def _group(key: str, size: int) -> GroupAggregate:
    group = GroupAggregate(key=key)
    group.add(MatchRecord.create(f"/x/{key}", size))
    return group


def test_node_modules_collapse_into_one_group() -> None:
    records = [
        MatchRecord.create("/a/node_modules", 500 * MB, NODE_MODULES),
        MatchRecord.create("/b/c/node_modules", 1200 * MB, NODE_MODULES),
        MatchRecord.create("/d/node_modules", 50 * MB, NODE_MODULES),
    ]

    groups = aggregate(records)

    assert len(groups) == 1
    assert groups[0].key == "node_modules"
    assert groups[0].total_size_kb == 1750 * MB
    assert groups[0].member_count == 3
    assert groups[0].member_paths == ["/a/node_modules", "/b/c/node_modules", "/d/node_modules"]


def test_sums_are_exact_and_order_independent() -> None:
    records = [MatchRecord.create(f"/p{i}/dist", i * 7 + 1) for i in range(20)]
    records += [MatchRecord.create(f"/p{i}/build", i + 3) for i in range(5)]

    forward = {g.key: (g.total_size_kb, g.member_count) for g in aggregate(records)}
    backward = {g.key: (g.total_size_kb, g.member_count) for g in aggregate(reversed(records))}

    assert forward == backward
    assert forward["dist"] == (sum(i * 7 + 1 for i in range(20)), 20)
    assert total_size_kb(aggregate(records)) == sum(r.size_kb for r in records)
    assert total_members(aggregate(records)) == 25


def test_empty_input_gives_no_groups() -> None:
    assert aggregate([]) == []


@pytest.mark.parametrize(
    "path, key",
    [
        ("/Users/ana/Library/Caches", "Library/Caches"),
        ("/Users/ana/.Trash", ".Trash"),
        ("/home/ana/.local/share/Trash", ".local/share/Trash"),
        ("/srv/app/vendor/bundle", "vendor/bundle"),
        ("/Users/ana/Library/Developer/Xcode/DerivedData", "Xcode/DerivedData"),
        ("/home/ana/.cache", ".cache"),
        ("/home/ana/code/dist", "dist"),
    ],
)
def test_logical_group_keys(path: str, key: str) -> None:
    assert logical_group_key(MatchRecord.create(path, 1)) == key


def test_glob_matches_group_under_the_glob() -> None:
    records = [MatchRecord.create("/a/x.pyc", 1, PYC), MatchRecord.create("/b/y.pyc", 2, PYC)]
    groups = aggregate(records)
    assert [(g.key, g.total_size_kb) for g in groups] == [("*.pyc", 3)]


def test_explicit_group_key_wins() -> None:
    pattern = ArtifactPattern(name="/var/log", kind=PatternKind.SYSTEM, category="system", group_key="system logs")
    assert logical_group_key(MatchRecord.create("/var/log", 10, pattern)) == "system logs"


def test_rank_orders_by_size_then_key() -> None:
    groups = [_group("b", 10), _group("a", 10), _group("c", 30), _group("d", 5)]

    ranked = rank(groups, display_limit=10)

    assert [e.group.key for e in ranked] == ["c", "a", "b", "d"]
    assert [e.rank for e in ranked] == [1, 2, 3, 4]


def test_display_limit_below_floor_is_raised_to_ten() -> None:
    groups = [_group(f"g{i:02d}", 100 - i) for i in range(30)]

    ranked = rank(groups, display_limit=5)

    assert clamp_display_limit(5) == 10
    assert len(ranked) == 10
    assert [e.rank for e in ranked] == list(range(1, 11))


def test_display_limit_ceiling() -> None:
    assert clamp_display_limit(10_000) == 500
    assert clamp_display_limit(50) == 50


@pytest.mark.parametrize("total", [1, 4, 5, 10, 11, 37, 50])
def test_tier_boundaries(total: int) -> None:
    urgent_max = math.ceil(total / 5)
    moderate_max = math.ceil(total / 2)
    for r in range(1, total + 1):
        expected = Tier.URGENT if r <= urgent_max else Tier.MODERATE if r <= moderate_max else Tier.INFORMATIONAL
        assert tier_for_rank(r, total) is expected


def test_tiers_use_truncated_count() -> None:
    groups = [_group(f"g{i:02d}", 100 - i) for i in range(30)]
    tiers = [e.tier for e in rank(groups, display_limit=10)]
    assert tiers == [Tier.URGENT] * 2 + [Tier.MODERATE] * 3 + [Tier.INFORMATIONAL] * 5


def test_file_named_like_a_cache_directory_stays_in_its_glob_group() -> None:
    cache_glob = ArtifactPattern(name="*.cache", kind=PatternKind.FILE_GLOB, category="logs_temp", min_size_kb=1024)
    cache_dir = ArtifactPattern(name=".cache", kind=PatternKind.FIXED, category="app_caches")
    records = [
        MatchRecord.create("/home/ana/.cache", 5 * MB, cache_dir),
        MatchRecord.create("/home/ana/project/.cache", 2 * MB, cache_glob),
    ]

    assert logical_group_key(records[1]) == "*.cache"
    assert sorted((g.key, g.member_count) for g in aggregate(records)) == [("*.cache", 1), (".cache", 1)]
