from __future__ import annotations

import asyncio
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from payband.db import get_session_factory
from payband.models import Activity, AttendanceRecord, Employee, Holiday, Job
from payband.services.records import ActivityEntry, DayRecord, EmployeeInfo, HolidayInfo, JobRef

logger = logging.getLogger("payband.sql_lookup")


def _job_ref(job: Job | None) -> JobRef | None:
    if job is None:
        return None
    return JobRef(code=job.code, name=job.name, id=job.id)


def _activity_entry(row: Activity) -> ActivityEntry:
    return ActivityEntry(
        job=_job_ref(row.job),
        description=row.description,
        is_extra=bool(row.is_extra),
        is_compensatory=bool(row.is_compensatory),
        start_ts=row.start_ts,
        end_ts=row.end_ts,
        duration_hours=row.duration_hours,
    )


def _day_record(row: AttendanceRecord) -> DayRecord:
    return DayRecord(
        employee_id=row.employee_id,
        record_date=row.record_date,
        entry_ts=row.entry_ts,
        exit_ts=row.exit_ts,
        is_continuous_shift=bool(row.is_continuous_shift),
        is_free_day=bool(row.is_free_day),
        holiday_hours=float(row.holiday_hours or 0),
        activities=tuple(_activity_entry(item) for item in row.activities),
    )


def load_attendance_record(db: Session, employee_id: int, day: date) -> DayRecord | None:
    row = db.scalar(
        select(AttendanceRecord)
        .options(selectinload(AttendanceRecord.activities).selectinload(Activity.job))
        .where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.record_date == day,
            AttendanceRecord.deleted_at.is_(None),
        )
    )
    if row is None:
        return None
    return _day_record(row)


def load_holiday(db: Session, day: date) -> HolidayInfo:
    row = db.scalar(select(Holiday).where(Holiday.holiday_date == day))
    if row is None:
        return HolidayInfo(is_holiday=False)
    return HolidayInfo(is_holiday=True, name=row.name)


def load_employee(db: Session, employee_id: int) -> EmployeeInfo | None:
    row = db.scalar(select(Employee).where(Employee.id == employee_id))
    if row is None:
        return None
    return EmployeeInfo(id=row.id, schedule_policy_code=row.schedule_policy_code)


class SqlAttendanceLookup:
    """Read-only ``AttendanceLookup`` over the SQLAlchemy models.

    Each call opens a short-lived session on a worker thread so the async
    classifiers never block the event loop.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory or get_session_factory()

    def _run(self, loader, *args):
        with self.session_factory() as db:
            return loader(db, *args)

    async def get_attendance_record(self, employee_id: int, day: date) -> DayRecord | None:
        record = await asyncio.to_thread(self._run, load_attendance_record, employee_id, day)
        if record is None:
            logger.debug("attendance_record_missing", extra={"employee_id": employee_id, "date": day.isoformat()})
        return record

    async def is_holiday(self, day: date) -> HolidayInfo:
        return await asyncio.to_thread(self._run, load_holiday, day)

    async def get_employee(self, employee_id: int) -> EmployeeInfo | None:
        return await asyncio.to_thread(self._run, load_employee, employee_id)
