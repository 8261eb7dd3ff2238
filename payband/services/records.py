from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Protocol

from payband.models import SchedulePolicyCode


@dataclass(frozen=True)
class JobRef:
    code: str
    name: str
    id: int | None = None


@dataclass(frozen=True)
class ActivityEntry:
    job: JobRef | None = None
    description: str | None = None
    is_extra: bool = False
    is_compensatory: bool = False
    start_ts: datetime | None = None
    end_ts: datetime | None = None
    duration_hours: float | None = None

    @property
    def has_interval(self) -> bool:
        return self.start_ts is not None and self.end_ts is not None


@dataclass(frozen=True)
class DayRecord:
    employee_id: int
    record_date: date
    entry_ts: datetime
    exit_ts: datetime
    is_continuous_shift: bool = False
    is_free_day: bool = False
    holiday_hours: float = 0.0
    activities: tuple[ActivityEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class HolidayInfo:
    is_holiday: bool
    name: str = ""


@dataclass(frozen=True)
class EmployeeInfo:
    id: int
    schedule_policy_code: SchedulePolicyCode | str | None


class AttendanceLookup(Protocol):
    async def get_attendance_record(self, employee_id: int, day: date) -> DayRecord | None: ...

    async def is_holiday(self, day: date) -> HolidayInfo: ...

    async def get_employee(self, employee_id: int) -> EmployeeInfo | None: ...


def free_day_record(employee_id: int, day: date) -> DayRecord:
    """Synthetic record used when nothing was captured for a date: the whole day is FREE."""
    midnight = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return DayRecord(
        employee_id=employee_id,
        record_date=day,
        entry_ts=midnight,
        exit_ts=midnight,
        is_continuous_shift=True,
        is_free_day=True,
    )
