from __future__ import annotations

import unittest
from dataclasses import replace

from payband.services.buckets import BucketAccumulator, LeaveCode
from payband.services.records import JobRef
from payband.services.segmenter import Segment, SegmentKind
from payband.services.streak import (
    EMPTY_STREAK,
    StreakState,
    Tier,
    classify_day_segments,
    classify_extra_slot,
    is_daytime,
)


def _segments(*parts: tuple[int, int, SegmentKind]) -> list[Segment]:
    return [Segment(start, end, kind) for start, end, kind in parts]


def _fill_free(*parts: tuple[int, int, SegmentKind]) -> list[Segment]:
    """Pad the given parts with FREE so they cover the whole day."""
    filled: list[tuple[int, int, SegmentKind]] = []
    cursor = 0
    for start, end, kind in sorted(parts):
        if start > cursor:
            filled.append((cursor, start, SegmentKind.FREE))
        filled.append((start, end, kind))
        cursor = end
    if cursor < 1440:
        filled.append((cursor, 1440, SegmentKind.FREE))
    return _segments(*filled)


class StreakLadderTests(unittest.TestCase):
    def test_daytime_band(self) -> None:
        self.assertFalse(is_daytime(285))
        self.assertTrue(is_daytime(300))
        self.assertTrue(is_daytime(1125))
        self.assertFalse(is_daytime(1140))

    def test_first_daytime_slot_sets_floor_125(self) -> None:
        state, tier = classify_extra_slot(EMPTY_STREAK, daytime=True, premium_day=False)

        self.assertEqual(tier, Tier.P25)
        self.assertEqual(state.floor, 1.25)
        self.assertTrue(state.seen_daytime)
        self.assertEqual(state.extra_minutes, 15)

    def test_mixed_tier_after_three_night_hours_and_a_daytime_slot(self) -> None:
        sink = BucketAccumulator()
        segments = _segments(
            (0, 120, SegmentKind.FREE),
            (120, 300, SegmentKind.EXTRA),
            (300, 360, SegmentKind.EXTRA),
            (360, 1440, SegmentKind.FREE),
        )

        state = EMPTY_STREAK
        # stop before the trailing FREE to inspect the live streak
        state = classify_day_segments(state, segments[:3], premium_day=False, block_mixed=False, sink=sink)

        self.assertEqual(sink.p50, 195)
        self.assertEqual(sink.p75, 45)
        self.assertEqual(sink.p25, 0)
        self.assertEqual(state.floor, 1.5)
        self.assertEqual(state.p50_minutes, 195)

    def test_full_day_of_extra(self) -> None:
        sink = BucketAccumulator()
        classify_day_segments(
            EMPTY_STREAK,
            _segments((0, 300, SegmentKind.EXTRA), (300, 1140, SegmentKind.EXTRA), (1140, 1440, SegmentKind.EXTRA)),
            premium_day=False,
            block_mixed=False,
            sink=sink,
        )

        self.assertEqual(sink.p50, 315)
        self.assertEqual(sink.p75, 1125)
        self.assertEqual(sink.total(), 1440)

    def test_block_mixed_keeps_the_floor(self) -> None:
        sink = BucketAccumulator()
        classify_day_segments(
            EMPTY_STREAK,
            _fill_free((0, 300, SegmentKind.EXTRA), (300, 420, SegmentKind.EXTRA)),
            premium_day=False,
            block_mixed=True,
            sink=sink,
        )

        self.assertEqual(sink.p50, 420)
        self.assertEqual(sink.p75, 0)

    def test_floor_never_drops_within_streak_and_resets_on_free(self) -> None:
        state = EMPTY_STREAK
        floors = []
        for daytime in (False, True, True, False, True):
            state, _tier = classify_extra_slot(state, daytime=daytime, premium_day=False)
            floors.append(state.floor)
        self.assertEqual(floors, sorted(floors))
        self.assertEqual(floors[-1], 1.5)

        sink = BucketAccumulator()
        state = classify_day_segments(
            state,
            _segments((0, 1440, SegmentKind.FREE)),
            premium_day=False,
            block_mixed=False,
            sink=sink,
        )
        self.assertEqual(state.floor, 0)
        self.assertEqual(state.extra_minutes, 0)
        self.assertFalse(state.seen_daytime)

    def test_free_reset_keeps_day_block_flag(self) -> None:
        state = classify_day_segments(
            StreakState(extra_minutes=60, floor=1.5),
            _segments((0, 1440, SegmentKind.FREE)),
            premium_day=False,
            block_mixed=True,
            sink=BucketAccumulator(),
        )

        self.assertTrue(state.block_mixed_tier)
        self.assertEqual(state.extra_minutes, 0)

    def test_premium_day_pays_100_and_counts_night_toward_mixed_tier(self) -> None:
        sink = BucketAccumulator()
        state = classify_day_segments(
            EMPTY_STREAK,
            _segments((0, 600, SegmentKind.FREE), (600, 720, SegmentKind.EXTRA), (720, 1440, SegmentKind.FREE)),
            premium_day=True,
            block_mixed=True,
            sink=sink,
        )
        self.assertEqual(sink.p100, 120)
        self.assertEqual(sink.p50, 0)
        self.assertEqual(state.p50_minutes, 0)

        state, tier = classify_extra_slot(EMPTY_STREAK, daytime=False, premium_day=True)
        self.assertEqual(tier, Tier.P100)
        self.assertEqual(state.p50_minutes, 15)
        self.assertTrue(state.holiday_carry_active)

    def test_holiday_carry_flag_does_not_change_pricing(self) -> None:
        carried = StreakState(extra_minutes=60, floor=1.5, p50_minutes=60, holiday_carry_active=True)
        plain = replace(carried, holiday_carry_active=False)

        for daytime in (True, False):
            self.assertEqual(
                classify_extra_slot(carried, daytime=daytime, premium_day=False)[1],
                classify_extra_slot(plain, daytime=daytime, premium_day=False)[1],
            )

    def test_streak_carries_from_sunday_into_monday(self) -> None:
        sunday = BucketAccumulator()
        state = classify_day_segments(
            EMPTY_STREAK,
            _segments((0, 300, SegmentKind.FREE), (300, 1140, SegmentKind.FREE), (1140, 1380, SegmentKind.FREE), (1380, 1440, SegmentKind.EXTRA)),
            premium_day=True,
            block_mixed=True,
            sink=sunday,
        )
        self.assertEqual(sunday.p100, 60)
        self.assertEqual(state.p50_minutes, 60)

        monday = BucketAccumulator()
        classify_day_segments(
            state,
            _fill_free((0, 300, SegmentKind.EXTRA), (300, 360, SegmentKind.EXTRA)),
            premium_day=False,
            block_mixed=False,
            sink=monday,
        )
        self.assertEqual(monday.p50, 315)
        self.assertEqual(monday.p75, 45)
        self.assertEqual(monday.free, 1080)

    def test_leave_coded_normal_segments_route_to_leave(self) -> None:
        sink = BucketAccumulator()
        classify_day_segments(
            EMPTY_STREAK,
            [
                Segment(0, 420, SegmentKind.FREE),
                Segment(420, 720, SegmentKind.NORMAL, job=JobRef("E02", "Vacation")),
                Segment(720, 1020, SegmentKind.NORMAL, job=JobRef("J10", "Welding"), is_compensatory=True),
                Segment(1020, 1440, SegmentKind.FREE),
            ],
            premium_day=False,
            block_mixed=False,
            sink=sink,
        )

        self.assertEqual(sink.leave[LeaveCode.VACATION], 300)
        self.assertEqual(sink.leave[LeaveCode.COMPENSATORY], 300)
        self.assertEqual(sink.normal, 0)
        self.assertEqual(sink.total(), 1440)


if __name__ == "__main__":
    unittest.main()
