from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from payband.errors import ClassificationError, ErrorCode
from payband.models import SchedulePolicyCode
from payband.services.buckets import BucketAccumulator, leave_code_for
from payband.services.records import AttendanceLookup, DayRecord, HolidayInfo, free_day_record
from payband.services.segmenter import (
    DAY_MINUTES,
    DAYTIME_END_MINUTE,
    DAYTIME_START_MINUTE,
    FindingCode,
    SegmentationResult,
    SegmentKind,
    format_minute,
    minute_of_day,
    segment_day,
)
from payband.services.streak import EMPTY_STREAK, StreakState, classify_day_segments
from payband.settings import Settings, get_settings, resolve_timezone

logger = logging.getLogger("payband.policies")

Segmenter = Callable[[DayRecord, ZoneInfo], SegmentationResult]


class DayType:
    FREE = "FREE"
    HOLIDAY = "HOLIDAY"
    DAY = "DAY"
    NIGHT = "NIGHT"


@dataclass(frozen=True)
class ShiftTemplate:
    start_minute: int
    end_minute: int
    expected_hours: float
    has_lunch: bool = True
    is_free_day: bool = False


WeeklyTemplate = tuple[ShiftTemplate, ...]


@dataclass(frozen=True)
class DailySchedule:
    day: date
    start_minute: int
    end_minute: int
    expected_minutes: int
    has_lunch: bool
    is_free_day: bool
    is_holiday: bool = False
    holiday_name: str = ""
    day_type: str | None = None

    @property
    def start_label(self) -> str:
        return format_minute(self.start_minute)

    @property
    def end_label(self) -> str:
        return format_minute(self.end_minute)

    @property
    def has_empty_window(self) -> bool:
        return self.start_minute == self.end_minute


@dataclass(frozen=True)
class DayClassification:
    day: date
    record: DayRecord
    has_record: bool
    holiday: HolidayInfo
    schedule: DailySchedule
    segmentation: SegmentationResult
    buckets: BucketAccumulator
    streak_in: StreakState | None = None
    streak_out: StreakState | None = None


@dataclass
class RangeClassification:
    employee_id: int
    policy_code: SchedulePolicyCode
    date_from: date
    date_to: date
    days: list[DayClassification] = field(default_factory=list)
    totals: BucketAccumulator = field(default_factory=BucketAccumulator)

    @property
    def day_count(self) -> int:
        return len(self.days)


def parse_date(value: date | str, *, field_name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = (value or "").strip() if isinstance(value, str) else ""
    try:
        if len(raw) != 10:
            raise ValueError(raw)
        return date.fromisoformat(raw)
    except ValueError:
        raise ClassificationError(
            ErrorCode.INVALID_DATE,
            f"{field_name} must be a YYYY-MM-DD date",
            details={"field": field_name, "value": value},
        ) from None


def iter_days(date_from: date, date_to: date) -> Iterator[date]:
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


def apply_duration_leave(record: DayRecord, buckets: BucketAccumulator) -> None:
    """Route leave activities captured only as a duration into their leave bucket.

    These activities have no place on the timeline, so their minutes are taken
    out of ``normal`` first and out of ``free`` once ``normal`` is exhausted.
    Whatever neither can cover is left in place for the balance check to report.
    """
    for activity in record.activities:
        if activity.is_extra or activity.has_interval or not activity.duration_hours:
            continue
        leave = leave_code_for(activity.job, is_compensatory=activity.is_compensatory)
        if leave is None:
            continue
        minutes = round(activity.duration_hours * 60)
        buckets.add_leave(leave, minutes)
        from_normal = min(buckets.normal, minutes)
        buckets.normal -= from_normal
        from_free = min(buckets.free, minutes - from_normal)
        buckets.free -= from_free


class SchedulePolicy:
    code: SchedulePolicyCode

    def __init__(
        self,
        lookup: AttendanceLookup,
        *,
        segmenter: Segmenter = segment_day,
        settings: Settings | None = None,
    ) -> None:
        self.lookup = lookup
        self.segmenter = segmenter
        self.settings = settings or get_settings()
        self.tz = resolve_timezone(self.settings.attendance_timezone)

    async def get_daily_schedule(self, employee_id: int, day: date | str) -> DailySchedule:
        target = parse_date(day)
        record, holiday = await self._load_day(employee_id, target)
        return self._schedule_for(target, record, holiday)

    async def segment_day(self, employee_id: int, day: date | str) -> SegmentationResult:
        target = parse_date(day)
        record = await self.lookup.get_attendance_record(employee_id, target)
        return self._segment(record or free_day_record(employee_id, target))

    async def classify_range(
        self,
        employee_id: int,
        date_from: date | str,
        date_to: date | str,
    ) -> RangeClassification:
        start, end = self._parse_range(date_from, date_to)
        result = await self._classify_range(employee_id, start, end)
        logger.info(
            "range_classified",
            extra={
                "employee_id": employee_id,
                "policy_code": self.code.value,
                "date_from": start.isoformat(),
                "date_to": end.isoformat(),
                "day_count": result.day_count,
                "totals": result.totals.as_dict(),
            },
        )
        return result

    async def _classify_range(self, employee_id: int, date_from: date, date_to: date) -> RangeClassification:
        raise NotImplementedError

    def _schedule_for(self, day: date, record: DayRecord | None, holiday: HolidayInfo) -> DailySchedule:
        raise NotImplementedError

    def _segment(self, record: DayRecord) -> SegmentationResult:
        return self.segmenter(record, self.tz)

    async def _load_day(self, employee_id: int, day: date) -> tuple[DayRecord | None, HolidayInfo]:
        record, holiday = await asyncio.gather(
            self.lookup.get_attendance_record(employee_id, day),
            self.lookup.is_holiday(day),
        )
        return record, holiday

    def _parse_range(self, date_from: date | str, date_to: date | str) -> tuple[date, date]:
        start = parse_date(date_from, field_name="date_from")
        end = parse_date(date_to, field_name="date_to")
        if end < start:
            raise ClassificationError(
                ErrorCode.INVALID_RANGE,
                "date_to must not be earlier than date_from",
                details={"date_from": start.isoformat(), "date_to": end.isoformat()},
            )
        return start, end

    def _check_balance(self, employee_id: int, day: date, buckets: BucketAccumulator) -> None:
        total = buckets.total()
        if total == DAY_MINUTES:
            return
        details = {"date": day.isoformat(), "total_minutes": total, "buckets": buckets.as_dict()}
        logger.warning("day_unbalanced", extra={"employee_id": employee_id, **details})
        raise ClassificationError(
            ErrorCode.UNBALANCED_DAY,
            f"Classified minutes for {day.isoformat()} add up to {total}, expected {DAY_MINUTES}",
            details=details,
        )


def _route_segments(segmentation: SegmentationResult, sink: BucketAccumulator, *, extra_bucket: str) -> None:
    for segment in segmentation.segments:
        if segment.kind == SegmentKind.NORMAL:
            leave = leave_code_for(segment.job, is_compensatory=segment.is_compensatory)
            if leave is None:
                sink.add("normal", segment.minutes)
            else:
                sink.add_leave(leave, segment.minutes)
        elif segment.kind == SegmentKind.LUNCH:
            sink.add("lunch", segment.minutes)
        elif segment.kind == SegmentKind.FREE:
            sink.add("free", segment.minutes)
        else:
            sink.add(extra_bucket, segment.minutes)


class StreakPolicy(SchedulePolicy):
    """Flexible weekly schedule; overtime is priced by the streak it belongs to."""

    def __init__(
        self,
        lookup: AttendanceLookup,
        *,
        code: SchedulePolicyCode,
        template: WeeklyTemplate,
        segmenter: Segmenter = segment_day,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(lookup, segmenter=segmenter, settings=settings)
        if len(template) != 7:
            raise ValueError("weekly template needs one shift per weekday")
        self.code = code
        self.template = template

    def _schedule_for(self, day: date, record: DayRecord | None, holiday: HolidayInfo) -> DailySchedule:
        shift = self.template[day.weekday()]
        if holiday.is_holiday:
            return DailySchedule(
                day=day,
                start_minute=shift.start_minute,
                end_minute=shift.start_minute,
                expected_minutes=0,
                has_lunch=False,
                is_free_day=True,
                is_holiday=True,
                holiday_name=holiday.name,
            )
        return DailySchedule(
            day=day,
            start_minute=shift.start_minute,
            end_minute=shift.end_minute,
            expected_minutes=round(shift.expected_hours * 60),
            has_lunch=shift.has_lunch,
            is_free_day=shift.is_free_day,
        )

    async def _classify_range(self, employee_id: int, date_from: date, date_to: date) -> RangeClassification:
        result = RangeClassification(
            employee_id=employee_id,
            policy_code=self.code,
            date_from=date_from,
            date_to=date_to,
        )
        first_loaded = await self._load_day(employee_id, date_from)
        state = await self._seed_streak(employee_id, date_from, first_loaded[0])
        for day in iter_days(date_from, date_to):
            if day == date_from:
                record, holiday = first_loaded
            else:
                record, holiday = await self._load_day(employee_id, day)
            classification = self._classify_loaded(employee_id, day, record, holiday, state, enforce=True)
            state = classification.streak_out or EMPTY_STREAK
            result.days.append(classification)
            result.totals.merge(classification.buckets)
        return result

    async def _seed_streak(self, employee_id: int, first_day: date, record: DayRecord | None) -> StreakState:
        if record is None or not self._segment(record).starts_with_extra_at_midnight:
            return EMPTY_STREAK

        history: list[tuple[date, DayRecord | None, HolidayInfo]] = []
        day = first_day - timedelta(days=1)
        for _ in range(max(0, self.settings.streak_lookback_days)):
            previous, holiday = await self._load_day(employee_id, day)
            history.append((day, previous, holiday))
            if self._segment(previous or free_day_record(employee_id, day)).has_free_segment:
                break
            day -= timedelta(days=1)

        state = EMPTY_STREAK
        for day, previous, holiday in reversed(history):
            state = self._classify_loaded(employee_id, day, previous, holiday, state, enforce=False).streak_out
        logger.info(
            "streak_seeded",
            extra={
                "employee_id": employee_id,
                "date_from": first_day.isoformat(),
                "replayed_days": len(history),
                "extra_minutes": state.extra_minutes,
                "floor": state.floor,
            },
        )
        return state

    def _classify_loaded(
        self,
        employee_id: int,
        day: date,
        record: DayRecord | None,
        holiday: HolidayInfo,
        state: StreakState,
        *,
        enforce: bool,
    ) -> DayClassification:
        effective = record or free_day_record(employee_id, day)
        schedule = self._schedule_for(day, record, holiday)
        segmentation = self._segment(effective)

        overlap = segmentation.finding(FindingCode.EXTRA_WITHIN_NORMAL)
        if enforce and overlap is not None:
            raise ClassificationError(
                ErrorCode.EXTRA_WITHIN_NORMAL,
                f"EXTRA time overlaps the entry/exit window on {day.isoformat()}",
                details={"date": day.isoformat(), **overlap.details},
            )

        premium_day = holiday.is_holiday or effective.is_free_day or schedule.is_free_day
        block_mixed = schedule.is_free_day or schedule.expected_minutes == 0 or schedule.has_empty_window
        sink = BucketAccumulator()
        streak_out = classify_day_segments(
            state,
            segmentation.segments,
            premium_day=premium_day,
            block_mixed=block_mixed,
            sink=sink,
        )
        self._check_balance(employee_id, day, sink)
        apply_duration_leave(effective, sink)
        self._check_balance(employee_id, day, sink)

        return DayClassification(
            day=day,
            record=effective,
            has_record=record is not None,
            holiday=holiday,
            schedule=schedule,
            segmentation=segmentation,
            buckets=sink,
            streak_in=state,
            streak_out=streak_out,
        )


class RotatingShiftPolicy(SchedulePolicy):
    """Fixed 12h rotating shifts: no lunch, no streak, all overtime at the 25% tier."""

    code = SchedulePolicyCode.H2_1
    default_start_minute = 7 * 60
    default_end_minute = 19 * 60

    def _schedule_for(self, day: date, record: DayRecord | None, holiday: HolidayInfo) -> DailySchedule:
        if holiday.is_holiday:
            return DailySchedule(
                day=day,
                start_minute=self.default_start_minute,
                end_minute=self.default_start_minute,
                expected_minutes=0,
                has_lunch=False,
                is_free_day=True,
                is_holiday=True,
                holiday_name=holiday.name,
                day_type=DayType.HOLIDAY,
            )
        if record is None:
            return DailySchedule(
                day=day,
                start_minute=self.default_start_minute,
                end_minute=self.default_end_minute,
                expected_minutes=self.default_end_minute - self.default_start_minute,
                has_lunch=False,
                is_free_day=False,
                day_type=DayType.DAY,
            )
        start_minute = minute_of_day(record.entry_ts, self.tz)
        end_minute = minute_of_day(record.exit_ts, self.tz)
        if record.is_free_day or start_minute == end_minute:
            return DailySchedule(
                day=day,
                start_minute=start_minute,
                end_minute=start_minute,
                expected_minutes=0,
                has_lunch=False,
                is_free_day=True,
                day_type=DayType.FREE,
            )
        night = is_night_shift(start_minute, end_minute)
        expected = (end_minute - start_minute) % DAY_MINUTES
        if night and day.weekday() == self.settings.rotating_rollover_weekday:
            expected = self.settings.rotating_rollover_night_minutes
        return DailySchedule(
            day=day,
            start_minute=start_minute,
            end_minute=end_minute,
            expected_minutes=expected,
            has_lunch=False,
            is_free_day=False,
            day_type=DayType.NIGHT if night else DayType.DAY,
        )

    async def segment_day(self, employee_id: int, day: date | str) -> SegmentationResult:
        target = parse_date(day)
        record = await self.lookup.get_attendance_record(employee_id, target)
        return self._segment(replace(record or free_day_record(employee_id, target), is_continuous_shift=True))

    async def _classify_range(self, employee_id: int, date_from: date, date_to: date) -> RangeClassification:
        result = RangeClassification(
            employee_id=employee_id,
            policy_code=self.code,
            date_from=date_from,
            date_to=date_to,
        )
        for day in iter_days(date_from, date_to):
            record, holiday = await self._load_day(employee_id, day)
            classification = self._classify_day(employee_id, day, record, holiday)
            result.days.append(classification)
            result.totals.merge(classification.buckets)
        return result

    def _classify_day(
        self,
        employee_id: int,
        day: date,
        record: DayRecord | None,
        holiday: HolidayInfo,
    ) -> DayClassification:
        effective = replace(record or free_day_record(employee_id, day), is_continuous_shift=True)
        schedule = self._schedule_for(day, record, holiday)
        segmentation = self._segment(effective)
        day_label = day.isoformat()

        errors = segmentation.errors()
        if errors:
            raise ClassificationError(
                ErrorCode.SEGMENTATION_FAILED,
                f"Attendance for {day_label} could not be segmented cleanly",
                details={
                    "date": day_label,
                    "findings": [{"code": item.code.value, **item.details} for item in errors],
                },
            )

        totals = segmentation.totals
        if totals.lunch_minutes > 0:
            raise ClassificationError(
                ErrorCode.LUNCH_NOT_PERMITTED,
                f"Rotating shifts do not take lunch ({day_label})",
                details={"date": day_label, "lunch_minutes": totals.lunch_minutes},
            )

        no_work_expected = holiday.is_holiday or record is None or effective.is_free_day
        if no_work_expected and totals.normal_minutes > 0:
            raise ClassificationError(
                ErrorCode.HOLIDAY_WITH_NORMAL,
                f"NORMAL time recorded on a holiday or free day ({day_label})",
                details={"date": day_label, "normal_minutes": totals.normal_minutes},
            )

        expected = 0 if no_work_expected else schedule.expected_minutes
        if totals.normal_minutes != expected:
            raise ClassificationError(
                ErrorCode.NORMAL_MINUTES_MISMATCH,
                f"NORMAL minutes for {day_label} do not match the shift",
                details={
                    "date": day_label,
                    "normal_minutes": totals.normal_minutes,
                    "expected_minutes": expected,
                    "day_type": schedule.day_type,
                },
            )

        sink = BucketAccumulator()
        _route_segments(segmentation, sink, extra_bucket="p25")
        self._check_balance(employee_id, day, sink)
        apply_duration_leave(effective, sink)
        self._check_balance(employee_id, day, sink)

        return DayClassification(
            day=day,
            record=effective,
            has_record=record is not None,
            holiday=holiday,
            schedule=schedule,
            segmentation=segmentation,
            buckets=sink,
        )


def is_night_shift(start_minute: int, end_minute: int) -> bool:
    crosses_midnight = end_minute < start_minute
    return crosses_midnight or start_minute >= DAYTIME_END_MINUTE or start_minute < DAYTIME_START_MINUTE
