from __future__ import annotations

from datetime import date

from payband.schemas import (
    ApportionmentEntryRead,
    ApportionmentRead,
    BucketTotalsRead,
    DailyScheduleRead,
    DayBucketsRead,
    DaySegmentsRead,
    JobRead,
    SegmentationTotalsRead,
    SegmentRead,
    ValidationFindingRead,
)
from payband.services.apportionment import Apportionment, ApportionmentEntry, apportion
from payband.services.buckets import BucketAccumulator, LeaveCode, minutes_to_hours
from payband.services.policies import RangeClassification, parse_date
from payband.services.policy_registry import resolve_policy
from payband.services.records import AttendanceLookup
from payband.services.segmenter import Segment
from payband.settings import Settings


def _bucket_hours(buckets: BucketAccumulator) -> dict[str, float]:
    payload = {
        "normal": minutes_to_hours(buckets.normal),
        "lunch": minutes_to_hours(buckets.lunch),
        "free": minutes_to_hours(buckets.free),
        "p25": minutes_to_hours(buckets.p25),
        "p50": minutes_to_hours(buckets.p50),
        "p75": minutes_to_hours(buckets.p75),
        "p100": minutes_to_hours(buckets.p100),
    }
    for code in LeaveCode:
        payload[code.value.lower()] = minutes_to_hours(buckets.leave.get(code, 0))
    return payload


def _segment_read(segment: Segment) -> SegmentRead:
    return SegmentRead(
        start=segment.start_label,
        end=segment.end_label,
        start_minute=segment.start_minute,
        end_minute=segment.end_minute,
        minutes=segment.minutes,
        kind=segment.kind.value,
        job=JobRead.model_validate(segment.job) if segment.job is not None else None,
        description=segment.description,
        is_compensatory=segment.is_compensatory,
    )


def _entry_reads(entries: tuple[ApportionmentEntry, ...]) -> list[ApportionmentEntryRead]:
    return [
        ApportionmentEntryRead(job_code=item.job_code, job_name=item.job_name, hours=item.hours, comments=list(item.comments))
        for item in entries
    ]


async def get_daily_schedule(
    lookup: AttendanceLookup,
    day: date | str,
    employee_id: int,
    *,
    settings: Settings | None = None,
) -> DailyScheduleRead:
    target = parse_date(day)
    policy = await resolve_policy(lookup, employee_id, settings=settings)
    schedule = await policy.get_daily_schedule(employee_id, target)
    return DailyScheduleRead(
        employee_id=employee_id,
        date=target,
        policy_code=policy.code,
        start=schedule.start_label,
        end=schedule.end_label,
        expected_hours=minutes_to_hours(schedule.expected_minutes),
        has_lunch=schedule.has_lunch,
        is_free_day=schedule.is_free_day,
        is_holiday=schedule.is_holiday,
        holiday_name=schedule.holiday_name or None,
        day_type=schedule.day_type,
    )


async def get_day_segments(
    lookup: AttendanceLookup,
    day: date | str,
    employee_id: int,
    *,
    settings: Settings | None = None,
) -> DaySegmentsRead:
    target = parse_date(day)
    policy = await resolve_policy(lookup, employee_id, settings=settings)
    result = await policy.segment_day(employee_id, target)
    totals = result.totals
    return DaySegmentsRead(
        employee_id=employee_id,
        date=target,
        policy_code=policy.code,
        lunch_applied=result.lunch_applied,
        segments=[_segment_read(item) for item in result.segments],
        findings=[
            ValidationFindingRead(
                code=item.code.value,
                message=item.message,
                severity=item.severity.value,
                details=item.details,
            )
            for item in result.findings
        ],
        totals=SegmentationTotalsRead(
            window_minutes=totals.window_minutes,
            normal_minutes=totals.normal_minutes,
            lunch_minutes=totals.lunch_minutes,
            extra_minutes=totals.extra_minutes,
            free_minutes=totals.free_minutes,
        ),
    )


async def _classify(
    lookup: AttendanceLookup,
    date_from: date | str,
    date_to: date | str,
    employee_id: int,
    *,
    settings: Settings | None = None,
) -> RangeClassification:
    policy = await resolve_policy(lookup, employee_id, settings=settings)
    return await policy.classify_range(employee_id, date_from, date_to)


async def get_range_hour_count(
    lookup: AttendanceLookup,
    date_from: date | str,
    date_to: date | str,
    employee_id: int,
    *,
    settings: Settings | None = None,
) -> BucketTotalsRead:
    classification = await _classify(lookup, date_from, date_to, employee_id, settings=settings)
    return BucketTotalsRead(
        employee_id=employee_id,
        policy_code=classification.policy_code,
        date_from=classification.date_from,
        date_to=classification.date_to,
        day_count=classification.day_count,
        days=[
            DayBucketsRead(
                date=item.day,
                is_holiday=item.holiday.is_holiday,
                has_record=item.has_record,
                **_bucket_hours(item.buckets),
            )
            for item in classification.days
        ],
        **_bucket_hours(classification.totals),
    )


def apportionment_read(classification: RangeClassification, result: Apportionment) -> ApportionmentRead:
    return ApportionmentRead(
        employee_id=classification.employee_id,
        policy_code=classification.policy_code,
        date_from=classification.date_from,
        date_to=classification.date_to,
        normal=_entry_reads(result.normal),
        p25=_entry_reads(result.p25),
        p50=_entry_reads(result.p50),
        p75=_entry_reads(result.p75),
        p100=_entry_reads(result.p100),
        holiday=_entry_reads(result.holiday),
        leave_hours=result.leave_hours,
        total_normal_hours=result.total_normal_hours,
        total_holiday_hours=result.total_holiday_hours,
    )


async def get_range_apportionment(
    lookup: AttendanceLookup,
    date_from: date | str,
    date_to: date | str,
    employee_id: int,
    *,
    settings: Settings | None = None,
) -> ApportionmentRead:
    classification = await _classify(lookup, date_from, date_to, employee_id, settings=settings)
    return apportionment_read(classification, apportion(classification))
