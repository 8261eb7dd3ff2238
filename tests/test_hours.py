from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone

from payband.errors import ClassificationError, ErrorCode
from payband.models import SchedulePolicyCode
from payband.services.hours import (
    get_daily_schedule,
    get_day_segments,
    get_range_apportionment,
    get_range_hour_count,
)
from payband.services.records import ActivityEntry, DayRecord, EmployeeInfo, HolidayInfo, JobRef
from payband.settings import Settings

MONDAY = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)
WELDING = JobRef(code="J10", name="Welding", id=10)
SETTINGS = Settings(attendance_timezone="UTC")


def _ts(day: date, hour: int) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(hours=hour)


class _FakeLookup:
    def __init__(self) -> None:
        self.records = {
            MONDAY: DayRecord(
                employee_id=5,
                record_date=MONDAY,
                entry_ts=_ts(MONDAY, 7),
                exit_ts=_ts(MONDAY, 17),
                activities=(
                    ActivityEntry(job=WELDING, description="frames", start_ts=_ts(MONDAY, 7), end_ts=_ts(MONDAY, 17)),
                    ActivityEntry(job=WELDING, is_extra=True, start_ts=_ts(MONDAY, 17), end_ts=_ts(MONDAY, 18)),
                ),
            ),
        }

    async def get_attendance_record(self, employee_id: int, day: date) -> DayRecord | None:
        return self.records.get(day)

    async def is_holiday(self, day: date) -> HolidayInfo:
        return HolidayInfo(is_holiday=day == TUESDAY, name="Founders Day" if day == TUESDAY else "")

    async def get_employee(self, employee_id: int) -> EmployeeInfo | None:
        if employee_id != 5:
            return None
        return EmployeeInfo(id=5, schedule_policy_code=SchedulePolicyCode.H1_1)


class HoursFacadeTests(unittest.IsolatedAsyncioTestCase):
    async def test_daily_schedule(self) -> None:
        schedule = await get_daily_schedule(_FakeLookup(), "2024-01-01", 5, settings=SETTINGS)

        self.assertEqual(schedule.policy_code, SchedulePolicyCode.H1_1)
        self.assertEqual((schedule.start, schedule.end), ("07:00", "17:00"))
        self.assertEqual(schedule.expected_hours, 9.0)
        self.assertTrue(schedule.has_lunch)
        self.assertIsNone(schedule.holiday_name)

        holiday = await get_daily_schedule(_FakeLookup(), "2024-01-02", 5, settings=SETTINGS)
        self.assertTrue(holiday.is_holiday)
        self.assertEqual(holiday.holiday_name, "Founders Day")
        self.assertEqual(holiday.expected_hours, 0)

    async def test_day_segments(self) -> None:
        payload = await get_day_segments(_FakeLookup(), "2024-01-01", 5, settings=SETTINGS)

        self.assertTrue(payload.lunch_applied)
        self.assertEqual(payload.findings, [])
        self.assertEqual(sum(item.minutes for item in payload.segments), 1440)
        extra = [item for item in payload.segments if item.kind == "EXTRA"]
        self.assertEqual([(item.start, item.end) for item in extra], [("17:00", "18:00")])
        self.assertEqual(extra[0].job.code, "J10")
        self.assertEqual(payload.totals.normal_minutes, 540)

    async def test_range_hour_count(self) -> None:
        payload = await get_range_hour_count(_FakeLookup(), "2024-01-01", "2024-01-02", 5, settings=SETTINGS)

        self.assertEqual(payload.day_count, 2)
        self.assertEqual(payload.normal, 9.0)
        self.assertEqual(payload.lunch, 1.0)
        self.assertEqual(payload.p25, 1.0)
        self.assertEqual(payload.free, 37.0)
        self.assertEqual(payload.days[1].is_holiday, True)
        self.assertEqual(payload.days[1].has_record, False)
        self.assertEqual(payload.days[1].free, 24.0)

    async def test_range_apportionment(self) -> None:
        payload = await get_range_apportionment(_FakeLookup(), "2024-01-01", "2024-01-01", 5, settings=SETTINGS)

        self.assertEqual([(item.job_code, item.hours) for item in payload.normal], [("J10", 9.0)])
        self.assertEqual(payload.normal[0].comments, ["frames"])
        self.assertEqual([(item.job_code, item.hours) for item in payload.p25], [("J10", 1.0)])
        self.assertEqual(payload.total_normal_hours, 9.0)

    async def test_errors_propagate(self) -> None:
        with self.assertRaises(ClassificationError) as ctx:
            await get_range_hour_count(_FakeLookup(), "2024-01-01", "2024-01-02", 6, settings=SETTINGS)
        self.assertEqual(ctx.exception.code, ErrorCode.EMPLOYEE_NOT_FOUND)

        with self.assertRaises(ClassificationError) as ctx:
            await get_day_segments(_FakeLookup(), "01/02/2024", 5, settings=SETTINGS)
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_DATE)


if __name__ == "__main__":
    unittest.main()
