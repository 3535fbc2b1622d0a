#!/usr/bin/env python3
"""
Ranker Module

Orders aggregated groups by total size and assigns presentation tiers:
the top fifth is urgent, up to the top half is moderate, the rest is
informational.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from aggregator import GroupAggregate

MIN_DISPLAY_LIMIT = 10
MAX_DISPLAY_LIMIT = 500
DEFAULT_DISPLAY_LIMIT = 50


class Tier(Enum):
    URGENT = "urgent"
    MODERATE = "moderate"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    group: GroupAggregate
    tier: Tier


def clamp_display_limit(limit: int) -> int:
    """Coerce a requested display count into [10, 500]"""
    return max(MIN_DISPLAY_LIMIT, min(MAX_DISPLAY_LIMIT, int(limit)))


def tier_for_rank(rank: int, total: int) -> Tier:
    """Tier of a 1-based rank among *total* entries"""
    if rank <= math.ceil(total / 5):
        return Tier.URGENT
    if rank <= math.ceil(total / 2):
        return Tier.MODERATE
    return Tier.INFORMATIONAL


def rank(groups: Iterable[GroupAggregate], display_limit: int = DEFAULT_DISPLAY_LIMIT) -> list[RankedEntry]:
    """Sort groups by size (ties by key), keep the top entries and tier them"""
    limit = clamp_display_limit(display_limit)
    ordered = sorted(groups, key=lambda g: (-g.total_size_kb, g.key))[:limit]
    total = len(ordered)
    return [RankedEntry(rank=i, group=g, tier=tier_for_rank(i, total)) for i, g in enumerate(ordered, start=1)]
