"""Day segmentation on a 15-minute grid.

A day is painted into 96 slots (00:00-24:00), each holding a kind and the
job/description that produced it. The slots are then compacted into segments
and split at the 05:00 and 19:00 cut points so that every segment sits wholly
inside the daytime or the nighttime band.

Painting order:

1. every slot starts FREE;
2. the entry/exit window is painted NORMAL (two ranges when the shift wraps
   past midnight, none on a free day or when entry == exit);
3. 12:00-13:00 is painted LUNCH when the shift is not continuous and the
   window fully covers it;
4. each activity with an explicit interval paints its slots. A slot whose
   centre falls outside the window, or any slot of an ``is_extra`` activity,
   becomes EXTRA and replaces whatever was there (LUNCH included). Otherwise
   the slot stays NORMAL and takes the activity's job, unless it is LUNCH.

Validation never raises: problems are returned as findings so callers decide
which of them are fatal.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from payband.services.records import DayRecord, JobRef
from payband.settings import get_attendance_timezone

SLOT_MINUTES = 15
DAY_MINUTES = 24 * 60
SLOT_COUNT = DAY_MINUTES // SLOT_MINUTES
DAYTIME_START_MINUTE = 5 * 60
DAYTIME_END_MINUTE = 19 * 60
MANDATORY_CUTS = (DAYTIME_START_MINUTE, DAYTIME_END_MINUTE)
LUNCH_RANGE = (12 * 60, 13 * 60)

MinuteRange = tuple[int, int]


class SegmentKind(str, enum.Enum):
    NORMAL = "NORMAL"
    LUNCH = "LUNCH"
    EXTRA = "EXTRA"
    FREE = "FREE"


class FindingCode(str, enum.Enum):
    EXTRA_WITHIN_NORMAL = "EXTRA_WITHIN_NORMAL"
    NORMAL_OUTSIDE_WINDOW = "NORMAL_OUTSIDE_WINDOW"
    LUNCH_NOT_ELIGIBLE = "LUNCH_NOT_ELIGIBLE"
    LUNCH_OUTSIDE_WINDOW = "LUNCH_OUTSIDE_WINDOW"
    NORMAL_PLUS_LUNCH_MISMATCH = "NORMAL_PLUS_LUNCH_MISMATCH"
    EXTRA_WITHOUT_INTERVAL = "EXTRA_WITHOUT_INTERVAL"


class FindingSeverity(str, enum.Enum):
    ERROR = "ERROR"
    WARN = "WARN"


@dataclass(frozen=True)
class Segment:
    start_minute: int
    end_minute: int
    kind: SegmentKind
    job: JobRef | None = None
    description: str | None = None
    is_compensatory: bool = False

    @property
    def minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def is_daytime(self) -> bool:
        return DAYTIME_START_MINUTE <= self.start_minute < DAYTIME_END_MINUTE

    @property
    def start_label(self) -> str:
        return format_minute(self.start_minute)

    @property
    def end_label(self) -> str:
        return format_minute(self.end_minute)


@dataclass(frozen=True)
class ValidationFinding:
    code: FindingCode
    message: str
    severity: FindingSeverity
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SegmentationTotals:
    window_minutes: int
    normal_minutes: int
    lunch_minutes: int
    extra_minutes: int
    free_minutes: int


@dataclass(frozen=True)
class SegmentationResult:
    segments: tuple[Segment, ...]
    findings: tuple[ValidationFinding, ...]
    totals: SegmentationTotals
    window: tuple[MinuteRange, ...]
    lunch_applied: bool

    def errors(self) -> list[ValidationFinding]:
        return [item for item in self.findings if item.severity == FindingSeverity.ERROR]

    def finding(self, code: FindingCode) -> ValidationFinding | None:
        return next((item for item in self.findings if item.code == code), None)

    @property
    def starts_with_extra_at_midnight(self) -> bool:
        return bool(self.segments) and self.segments[0].kind == SegmentKind.EXTRA and self.segments[0].start_minute == 0

    @property
    def has_free_segment(self) -> bool:
        return any(item.kind == SegmentKind.FREE for item in self.segments)


@dataclass(frozen=True)
class _Slot:
    kind: SegmentKind
    job: JobRef | None = None
    description: str | None = None
    is_compensatory: bool = False


_FREE_SLOT = _Slot(SegmentKind.FREE)
_NORMAL_SLOT = _Slot(SegmentKind.NORMAL)
_LUNCH_SLOT = _Slot(SegmentKind.LUNCH)


def format_minute(minute: int) -> str:
    if minute == DAY_MINUTES:
        return "24:00"
    return f"{minute // 60:02d}:{minute % 60:02d}"


def minute_of_day(ts: datetime, tz: ZoneInfo) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    local = ts.astimezone(tz)
    return local.hour * 60 + local.minute


def window_ranges(entry_minute: int, exit_minute: int) -> list[MinuteRange]:
    if entry_minute == exit_minute:
        return []
    if entry_minute < exit_minute:
        return [(entry_minute, exit_minute)]
    return [(0, exit_minute), (entry_minute, DAY_MINUTES)]


def split_wrapped(start_minute: int, end_minute: int) -> list[MinuteRange]:
    if start_minute < end_minute:
        return [(start_minute, end_minute)]
    return [item for item in ((0, end_minute), (start_minute, DAY_MINUTES)) if item[0] < item[1]]


def intersect(a: MinuteRange, b: MinuteRange) -> MinuteRange | None:
    start = max(a[0], b[0])
    end = min(a[1], b[1])
    return (start, end) if start < end else None


def overlap_minutes(target: MinuteRange, ranges: list[MinuteRange] | tuple[MinuteRange, ...]) -> int:
    total = 0
    for item in ranges:
        hit = intersect(target, item)
        if hit is not None:
            total += hit[1] - hit[0]
    return total


def _contained(target: MinuteRange, ranges: list[MinuteRange]) -> bool:
    return any(target[0] >= start and target[1] <= end for start, end in ranges)


def _slot_bounds(rng: MinuteRange) -> tuple[int, int]:
    first = math.floor(rng[0] / SLOT_MINUTES)
    last = math.ceil(rng[1] / SLOT_MINUTES)
    return max(0, first), min(SLOT_COUNT, last)


def _merge(ranges: list[MinuteRange]) -> list[MinuteRange]:
    merged: list[MinuteRange] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _range_labels(ranges: list[MinuteRange]) -> list[dict[str, str]]:
    return [{"start": format_minute(start), "end": format_minute(end)} for start, end in ranges]


def _split_at_cuts(segment: Segment) -> list[Segment]:
    cuts = [cut for cut in MANDATORY_CUTS if segment.start_minute < cut < segment.end_minute]
    if not cuts:
        return [segment]
    parts: list[Segment] = []
    last = segment.start_minute
    for cut in cuts:
        parts.append(_with_bounds(segment, last, cut))
        last = cut
    parts.append(_with_bounds(segment, last, segment.end_minute))
    return parts


def _with_bounds(segment: Segment, start_minute: int, end_minute: int) -> Segment:
    return Segment(
        start_minute=start_minute,
        end_minute=end_minute,
        kind=segment.kind,
        job=segment.job,
        description=segment.description,
        is_compensatory=segment.is_compensatory,
    )


def _compact(slots: list[_Slot]) -> list[Segment]:
    segments: list[Segment] = []
    run_start = 0
    current = slots[0]

    def _close(end_index: int) -> None:
        segments.append(
            Segment(
                start_minute=run_start * SLOT_MINUTES,
                end_minute=end_index * SLOT_MINUTES,
                kind=current.kind,
                job=current.job,
                description=current.description,
                is_compensatory=current.is_compensatory,
            )
        )

    for index in range(1, len(slots)):
        if slots[index] != current:
            _close(index)
            run_start = index
            current = slots[index]
    _close(len(slots))
    return segments


def _minutes_of(segments: list[Segment], kind: SegmentKind) -> int:
    return sum(item.minutes for item in segments if item.kind == kind)


def segment_day(record: DayRecord, tz: ZoneInfo | None = None) -> SegmentationResult:
    zone = tz or get_attendance_timezone()
    findings: list[ValidationFinding] = []
    slots: list[_Slot] = [_FREE_SLOT] * SLOT_COUNT

    entry_minute = minute_of_day(record.entry_ts, zone)
    exit_minute = minute_of_day(record.exit_ts, zone)
    window = [] if record.is_free_day else window_ranges(entry_minute, exit_minute)

    for rng in window:
        first, last = _slot_bounds(rng)
        for index in range(first, last):
            slots[index] = _NORMAL_SLOT

    lunch_inside_window = _contained(LUNCH_RANGE, window)
    lunch_applied = not record.is_continuous_shift and lunch_inside_window
    if lunch_applied:
        first, last = _slot_bounds(LUNCH_RANGE)
        for index in range(first, last):
            slots[index] = _LUNCH_SLOT
    elif not record.is_continuous_shift and window:
        findings.append(
            ValidationFinding(
                code=FindingCode.LUNCH_NOT_ELIGIBLE,
                message="Lunch does not apply: the entry/exit window does not fully cover 12:00-13:00.",
                severity=FindingSeverity.WARN,
                details={"window": _range_labels(window)},
            )
        )

    painted_extra: list[MinuteRange] = []
    for activity in record.activities:
        if not activity.has_interval:
            if activity.is_extra:
                findings.append(
                    ValidationFinding(
                        code=FindingCode.EXTRA_WITHOUT_INTERVAL,
                        message="Extra activity has no start/end and cannot be placed on the timeline.",
                        severity=FindingSeverity.WARN,
                        details={
                            "job_code": activity.job.code if activity.job else None,
                            "description": activity.description,
                        },
                    )
                )
            continue

        start_minute = minute_of_day(activity.start_ts, zone)  # type: ignore[arg-type]
        end_minute = minute_of_day(activity.end_ts, zone)  # type: ignore[arg-type]
        extra_slot = _Slot(SegmentKind.EXTRA, activity.job, activity.description, activity.is_compensatory)
        normal_slot = _Slot(SegmentKind.NORMAL, activity.job, activity.description, activity.is_compensatory)

        for rng in split_wrapped(start_minute, end_minute):
            first, last = _slot_bounds(rng)
            for index in range(first, last):
                centre = index * SLOT_MINUTES + SLOT_MINUTES / 2
                inside_window = any(start <= centre < end for start, end in window)
                if activity.is_extra or not inside_window:
                    slots[index] = extra_slot
                    painted_extra.append((index * SLOT_MINUTES, (index + 1) * SLOT_MINUTES))
                elif slots[index].kind != SegmentKind.LUNCH:
                    slots[index] = normal_slot

    segments: list[Segment] = []
    for item in _compact(slots):
        segments.extend(_split_at_cuts(item))
    segments.sort(key=lambda item: (item.start_minute, item.end_minute))

    extra_overlap = [
        hit for extra in _merge(painted_extra) for rng in window if (hit := intersect(extra, rng)) is not None
    ]
    if extra_overlap:
        findings.append(
            ValidationFinding(
                code=FindingCode.EXTRA_WITHIN_NORMAL,
                message="EXTRA time overlaps the declared entry/exit window.",
                severity=FindingSeverity.ERROR,
                details={"ranges": _range_labels(extra_overlap)},
            )
        )

    normal_outside = [
        (item.start_minute, item.end_minute)
        for item in segments
        if item.kind == SegmentKind.NORMAL and overlap_minutes((item.start_minute, item.end_minute), window) < item.minutes
    ]
    if normal_outside:
        findings.append(
            ValidationFinding(
                code=FindingCode.NORMAL_OUTSIDE_WINDOW,
                message="NORMAL segments fall outside the declared entry/exit window.",
                severity=FindingSeverity.ERROR,
                details={"ranges": _range_labels(normal_outside)},
            )
        )

    lunch_outside = [
        (item.start_minute, item.end_minute)
        for item in segments
        if item.kind == SegmentKind.LUNCH and overlap_minutes((item.start_minute, item.end_minute), window) < item.minutes
    ]
    if lunch_outside:
        findings.append(
            ValidationFinding(
                code=FindingCode.LUNCH_OUTSIDE_WINDOW,
                message="LUNCH falls outside the declared entry/exit window.",
                severity=FindingSeverity.ERROR,
                details={"ranges": _range_labels(lunch_outside)},
            )
        )

    window_minutes = sum(end - start for start, end in window)
    normal_minutes = _minutes_of(segments, SegmentKind.NORMAL)
    lunch_minutes = _minutes_of(segments, SegmentKind.LUNCH)
    lunch_in_window = sum(
        overlap_minutes((item.start_minute, item.end_minute), window)
        for item in segments
        if item.kind == SegmentKind.LUNCH
    )
    if window_minutes != normal_minutes + lunch_in_window:
        findings.append(
            ValidationFinding(
                code=FindingCode.NORMAL_PLUS_LUNCH_MISMATCH,
                message="NORMAL + LUNCH minutes do not match the declared entry/exit window.",
                severity=FindingSeverity.ERROR,
                details={
                    "window_minutes": window_minutes,
                    "normal_minutes": normal_minutes,
                    "lunch_minutes_in_window": lunch_in_window,
                    "lunch_applied": lunch_applied,
                    "is_continuous_shift": record.is_continuous_shift,
                },
            )
        )

    totals = SegmentationTotals(
        window_minutes=window_minutes,
        normal_minutes=normal_minutes,
        lunch_minutes=lunch_minutes,
        extra_minutes=_minutes_of(segments, SegmentKind.EXTRA),
        free_minutes=_minutes_of(segments, SegmentKind.FREE),
    )
    return SegmentationResult(
        segments=tuple(segments),
        findings=tuple(findings),
        totals=totals,
        window=tuple(window),
        lunch_applied=lunch_applied,
    )
