"""Overtime surcharge ladder for the flexible schedule policy.

A streak is the run of EXTRA time since the last FREE segment. It carries over
midnight, so the state is threaded explicitly from slot to slot and day to day:
every function here takes a ``StreakState`` and returns a new one.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, replace

from payband.services.buckets import BucketAccumulator, leave_code_for
from payband.services.segmenter import (
    DAYTIME_END_MINUTE,
    DAYTIME_START_MINUTE,
    SLOT_MINUTES,
    Segment,
    SegmentKind,
)

DAYTIME_FLOOR = 1.25
NIGHTTIME_FLOOR = 1.5
MIXED_MULTIPLIER = 1.75
PREMIUM_MULTIPLIER = 2.0
MIXED_TIER_THRESHOLD_MINUTES = 180


class Tier(str, enum.Enum):
    P25 = "p25"
    P50 = "p50"
    P75 = "p75"
    P100 = "p100"


@dataclass(frozen=True)
class StreakState:
    """Running overtime streak threaded slot by slot across days.

    ``holiday_carry_active`` is informational: it records that the streak has
    touched a premium day. Pricing after such a day relies on ``floor`` and
    ``p50_minutes`` carrying over, so no tier decision reads the flag.
    """

    extra_minutes: int = 0
    p50_minutes: int = 0
    seen_daytime: bool = False
    seen_nighttime: bool = False
    floor: float = 0.0
    holiday_carry_active: bool = False
    block_mixed_tier: bool = False

    @property
    def is_empty(self) -> bool:
        return self.extra_minutes == 0


EMPTY_STREAK = StreakState()


def is_daytime(start_minute: int) -> bool:
    return DAYTIME_START_MINUTE <= start_minute < DAYTIME_END_MINUTE


def reset_streak(state: StreakState) -> StreakState:
    # the mixed-tier block belongs to the day, not to the streak
    return replace(EMPTY_STREAK, block_mixed_tier=state.block_mixed_tier)


def _tier_for(multiplier: float) -> Tier:
    if multiplier >= PREMIUM_MULTIPLIER:
        return Tier.P100
    if multiplier >= MIXED_MULTIPLIER:
        return Tier.P75
    if multiplier >= NIGHTTIME_FLOOR:
        return Tier.P50
    return Tier.P25


def classify_extra_slot(state: StreakState, *, daytime: bool, premium_day: bool) -> tuple[StreakState, Tier]:
    """Classify one 15-minute EXTRA slot and return the advanced state with its tier."""
    floor = max(state.floor, DAYTIME_FLOOR if daytime else NIGHTTIME_FLOOR)

    if premium_day:
        tier = Tier.P100
        p50_minutes = state.p50_minutes + (SLOT_MINUTES if floor >= NIGHTTIME_FLOOR else 0)
        holiday_carry_active = True
    else:
        mixed = (
            not state.block_mixed_tier
            and state.p50_minutes >= MIXED_TIER_THRESHOLD_MINUTES
            and state.seen_daytime
        )
        tier = _tier_for(MIXED_MULTIPLIER if mixed else floor)
        p50_minutes = state.p50_minutes + (SLOT_MINUTES if tier == Tier.P50 else 0)
        holiday_carry_active = state.holiday_carry_active

    next_state = replace(
        state,
        extra_minutes=state.extra_minutes + SLOT_MINUTES,
        p50_minutes=p50_minutes,
        seen_daytime=state.seen_daytime or daytime,
        seen_nighttime=state.seen_nighttime or not daytime,
        floor=floor,
        holiday_carry_active=holiday_carry_active,
    )
    return next_state, tier


def classify_day_segments(
    state: StreakState,
    segments: Iterable[Segment],
    *,
    premium_day: bool,
    block_mixed: bool,
    sink: BucketAccumulator,
) -> StreakState:
    """Fold one day's segments into ``sink`` and return the streak state at midnight."""
    state = replace(state, block_mixed_tier=block_mixed)
    for segment in segments:
        if segment.kind == SegmentKind.FREE:
            sink.add("free", segment.minutes)
            state = reset_streak(state)
        elif segment.kind == SegmentKind.LUNCH:
            sink.add("lunch", segment.minutes)
        elif segment.kind == SegmentKind.NORMAL:
            leave = leave_code_for(segment.job, is_compensatory=segment.is_compensatory)
            if leave is None:
                sink.add("normal", segment.minutes)
            else:
                sink.add_leave(leave, segment.minutes)
        else:
            for slot_start in range(segment.start_minute, segment.end_minute, SLOT_MINUTES):
                state, tier = classify_extra_slot(state, daytime=is_daytime(slot_start), premium_day=premium_day)
                sink.add(tier.value, SLOT_MINUTES)
    return state
