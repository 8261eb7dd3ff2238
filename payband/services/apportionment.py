"""Split classified hour buckets across the jobs that were actually worked.

Each day is apportioned on its own buckets and segments. NORMAL segments map
1:1 to their job. The overtime tiers are spread over the day's EXTRA segments,
weighted by how much of each job fell in the daytime or nighttime band, so
non-extra work painted outside the window is priced like any other overtime.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from payband.services.buckets import LeaveCode, leave_code_for, minutes_to_hours
from payband.services.policies import DayClassification, RangeClassification
from payband.services.records import JobRef
from payband.services.segmenter import SegmentKind

logger = logging.getLogger("payband.apportionment")

HOLIDAY_JOB = JobRef(code="00", name="Holiday")
UNASSIGNED_JOB = JobRef(code="--", name="Unassigned")
BRACKETS = ("normal", "p25", "p50", "p75", "p100", "holiday")
TIER_BRACKETS = ("p25", "p50", "p75", "p100")


@dataclass(frozen=True)
class ApportionmentEntry:
    job_code: str
    job_name: str
    hours: float
    comments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Apportionment:
    normal: tuple[ApportionmentEntry, ...] = ()
    p25: tuple[ApportionmentEntry, ...] = ()
    p50: tuple[ApportionmentEntry, ...] = ()
    p75: tuple[ApportionmentEntry, ...] = ()
    p100: tuple[ApportionmentEntry, ...] = ()
    holiday: tuple[ApportionmentEntry, ...] = ()
    leave_hours: dict[str, float] = field(default_factory=dict)
    total_normal_hours: float = 0.0
    total_holiday_hours: float = 0.0


@dataclass
class _JobWeights:
    daytime: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    nighttime: dict[str, float] = field(default_factory=lambda: defaultdict(float))

    def total(self) -> dict[str, float]:
        combined: dict[str, float] = defaultdict(float)
        for weights in (self.daytime, self.nighttime):
            for code, minutes in weights.items():
                combined[code] += minutes
        return combined


class _Ledger:
    def __init__(self) -> None:
        self.minutes: dict[str, dict[str, float]] = {name: defaultdict(float) for name in BRACKETS}
        self.comments: dict[str, dict[str, list[str]]] = {name: defaultdict(list) for name in BRACKETS}
        self.names: dict[str, str] = {}

    def remember(self, job: JobRef) -> str:
        self.names.setdefault(job.code, job.name)
        return job.code

    def add(self, bracket: str, code: str, minutes: float) -> None:
        self.minutes[bracket][code] += minutes

    def comment(self, bracket: str, code: str, text: str | None) -> None:
        cleaned = (text or "").strip()
        if cleaned and cleaned not in self.comments[bracket][code]:
            self.comments[bracket][code].append(cleaned)

    def entries(self, bracket: str) -> tuple[ApportionmentEntry, ...]:
        rows = []
        for code, minutes in self.minutes[bracket].items():
            hours = minutes_to_hours(minutes)
            if hours == 0:
                continue
            rows.append(
                ApportionmentEntry(
                    job_code=code,
                    job_name=self.names.get(code, code),
                    hours=hours,
                    comments=tuple(self.comments[bracket].get(code, [])),
                )
            )
        return tuple(sorted(rows, key=lambda item: item.job_code))


def _distribute(amount: float, weights: dict[str, float], fallback: dict[str, float]) -> dict[str, float]:
    pool = weights if sum(weights.values()) > 0 else fallback
    pool_total = sum(pool.values())
    if amount <= 0 or pool_total <= 0:
        return {}
    return {code: amount * minutes / pool_total for code, minutes in pool.items() if minutes > 0}


def _apportion_day(day: DayClassification, ledger: _Ledger) -> None:
    weights = _JobWeights()
    for segment in day.segmentation.segments:
        if segment.kind == SegmentKind.EXTRA:
            code = ledger.remember(segment.job or UNASSIGNED_JOB)
            band = weights.daytime if segment.is_daytime else weights.nighttime
            band[code] += segment.minutes
            for bracket in TIER_BRACKETS:
                ledger.comment(bracket, code, segment.description)
        elif segment.kind == SegmentKind.NORMAL and segment.job is not None:
            if leave_code_for(segment.job, is_compensatory=segment.is_compensatory) is not None:
                continue
            code = ledger.remember(segment.job)
            ledger.add("normal", code, segment.minutes)
            ledger.comment("normal", code, segment.description)

    # duration-only activities have no slots on the timeline
    for activity in day.record.activities:
        if activity.has_interval or not activity.duration_hours:
            continue
        if activity.is_extra:
            code = ledger.remember(activity.job or UNASSIGNED_JOB)
            weights.daytime[code] += activity.duration_hours * 60
            for bracket in TIER_BRACKETS:
                ledger.comment(bracket, code, activity.description)
        elif activity.job is not None and leave_code_for(activity.job, is_compensatory=activity.is_compensatory) is None:
            code = ledger.remember(activity.job)
            ledger.add("normal", code, activity.duration_hours * 60)
            ledger.comment("normal", code, activity.description)

    buckets = day.buckets
    total_weights = weights.total()
    if (buckets.p25 + buckets.p50 + buckets.p75 + buckets.p100) > 0 and not total_weights:
        logger.warning(
            "apportionment_unassigned_extra",
            extra={"date": day.day.isoformat(), "employee_id": day.record.employee_id},
        )

    for code, minutes in _distribute(buckets.p25, weights.daytime, total_weights).items():
        ledger.add("p25", code, minutes)
    for code, minutes in _distribute(buckets.p50, weights.nighttime, total_weights).items():
        ledger.add("p50", code, minutes)

    daytime_pool = sum(weights.daytime.values())
    p75_daytime = min(buckets.p75, daytime_pool)
    for code, minutes in _distribute(p75_daytime, weights.daytime, total_weights).items():
        ledger.add("p75", code, minutes)
    for code, minutes in _distribute(buckets.p75 - p75_daytime, weights.nighttime, total_weights).items():
        ledger.add("p75", code, minutes)

    for code, minutes in _distribute(buckets.p100, total_weights, total_weights).items():
        ledger.add("p100", code, minutes)

    if day.record.holiday_hours:
        code = ledger.remember(HOLIDAY_JOB)
        ledger.add("holiday", code, day.record.holiday_hours * 60)


def apportion(classification: RangeClassification) -> Apportionment:
    ledger = _Ledger()
    for day in classification.days:
        _apportion_day(day, ledger)

    normal = ledger.entries("normal")
    holiday = ledger.entries("holiday")
    leave_hours = {code.value: minutes_to_hours(classification.totals.leave.get(code, 0)) for code in LeaveCode}
    result = Apportionment(
        normal=normal,
        p25=ledger.entries("p25"),
        p50=ledger.entries("p50"),
        p75=ledger.entries("p75"),
        p100=ledger.entries("p100"),
        holiday=holiday,
        leave_hours=leave_hours,
        total_normal_hours=round(sum(item.hours for item in normal), 2),
        total_holiday_hours=round(sum(item.hours for item in holiday), 2),
    )
    logger.info(
        "range_apportioned",
        extra={
            "employee_id": classification.employee_id,
            "date_from": classification.date_from.isoformat(),
            "date_to": classification.date_to.isoformat(),
            "job_count": len(ledger.names),
        },
    )
    return result
