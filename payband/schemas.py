from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from payband.models import SchedulePolicyCode


class DailyScheduleRead(BaseModel):
    employee_id: int
    date: date
    policy_code: SchedulePolicyCode
    start: str
    end: str
    expected_hours: float
    has_lunch: bool
    is_free_day: bool
    is_holiday: bool
    holiday_name: str | None = None
    day_type: Literal["FREE", "HOLIDAY", "DAY", "NIGHT"] | None = None


class JobRead(BaseModel):
    id: int | None = None
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class SegmentRead(BaseModel):
    start: str
    end: str
    start_minute: int
    end_minute: int
    minutes: int
    kind: Literal["NORMAL", "LUNCH", "EXTRA", "FREE"]
    job: JobRead | None = None
    description: str | None = None
    is_compensatory: bool = False


class ValidationFindingRead(BaseModel):
    code: str
    message: str
    severity: Literal["ERROR", "WARN"]
    details: dict[str, Any] = Field(default_factory=dict)


class SegmentationTotalsRead(BaseModel):
    window_minutes: int
    normal_minutes: int
    lunch_minutes: int
    extra_minutes: int
    free_minutes: int


class DaySegmentsRead(BaseModel):
    employee_id: int
    date: date
    policy_code: SchedulePolicyCode
    lunch_applied: bool
    segments: list[SegmentRead]
    findings: list[ValidationFindingRead]
    totals: SegmentationTotalsRead


class BucketHoursRead(BaseModel):
    normal: float = 0
    lunch: float = 0
    free: float = 0
    p25: float = 0
    p50: float = 0
    p75: float = 0
    p100: float = 0
    disability: float = 0
    vacation: float = 0
    paid_leave: float = 0
    unpaid_leave: float = 0
    absence: float = 0
    compensatory: float = 0


class DayBucketsRead(BucketHoursRead):
    date: date
    is_holiday: bool = False
    has_record: bool = True


class BucketTotalsRead(BucketHoursRead):
    employee_id: int
    policy_code: SchedulePolicyCode
    date_from: date
    date_to: date
    day_count: int
    days: list[DayBucketsRead] = Field(default_factory=list)


class ApportionmentEntryRead(BaseModel):
    job_code: str
    job_name: str
    hours: float
    comments: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ApportionmentRead(BaseModel):
    employee_id: int
    policy_code: SchedulePolicyCode
    date_from: date
    date_to: date
    normal: list[ApportionmentEntryRead] = Field(default_factory=list)
    p25: list[ApportionmentEntryRead] = Field(default_factory=list)
    p50: list[ApportionmentEntryRead] = Field(default_factory=list)
    p75: list[ApportionmentEntryRead] = Field(default_factory=list)
    p100: list[ApportionmentEntryRead] = Field(default_factory=list)
    holiday: list[ApportionmentEntryRead] = Field(default_factory=list)
    leave_hours: dict[str, float] = Field(default_factory=dict)
    total_normal_hours: float = 0
    total_holiday_hours: float = 0
