from __future__ import annotations

import enum
from dataclasses import dataclass, field

from payband.services.records import JobRef

MINUTES_PER_HOUR = 60


class LeaveCode(str, enum.Enum):
    DISABILITY = "DISABILITY"
    VACATION = "VACATION"
    PAID_LEAVE = "PAID_LEAVE"
    UNPAID_LEAVE = "UNPAID_LEAVE"
    ABSENCE = "ABSENCE"
    COMPENSATORY = "COMPENSATORY"


LEAVE_JOB_CODES: dict[str, LeaveCode] = {
    "E01": LeaveCode.DISABILITY,
    "E02": LeaveCode.VACATION,
    "E03": LeaveCode.PAID_LEAVE,
    "E04": LeaveCode.UNPAID_LEAVE,
    "E05": LeaveCode.ABSENCE,
    "E06": LeaveCode.COMPENSATORY,
    "E07": LeaveCode.COMPENSATORY,
}

WORK_BUCKETS = ("normal", "lunch", "free", "p25", "p50", "p75", "p100")


def leave_code_for(job: JobRef | None, *, is_compensatory: bool = False) -> LeaveCode | None:
    """Leave category a job code routes to, if any. The compensatory flag wins over the job code."""
    if is_compensatory:
        return LeaveCode.COMPENSATORY
    if job is None:
        return None
    return LEAVE_JOB_CODES.get((job.code or "").strip().upper())


def minutes_to_hours(minutes: int | float) -> float:
    return round(minutes / MINUTES_PER_HOUR, 2)


@dataclass
class BucketAccumulator:
    normal: int = 0
    lunch: int = 0
    free: int = 0
    p25: int = 0
    p50: int = 0
    p75: int = 0
    p100: int = 0
    leave: dict[LeaveCode, int] = field(default_factory=dict)

    def add(self, bucket: str, minutes: int) -> None:
        if bucket not in WORK_BUCKETS:
            raise KeyError(bucket)
        setattr(self, bucket, getattr(self, bucket) + minutes)

    def add_leave(self, code: LeaveCode, minutes: int) -> None:
        self.leave[code] = self.leave.get(code, 0) + minutes

    def merge(self, other: BucketAccumulator) -> None:
        for name in WORK_BUCKETS:
            self.add(name, getattr(other, name))
        for code, minutes in other.leave.items():
            self.add_leave(code, minutes)

    def leave_minutes(self) -> int:
        return sum(self.leave.values())

    def total(self) -> int:
        return sum(getattr(self, name) for name in WORK_BUCKETS) + self.leave_minutes()

    def as_dict(self) -> dict[str, int]:
        payload = {name: getattr(self, name) for name in WORK_BUCKETS}
        for code in LeaveCode:
            payload[code.value.lower()] = self.leave.get(code, 0)
        return payload

    def copy(self) -> BucketAccumulator:
        clone = BucketAccumulator()
        clone.merge(self)
        return clone
