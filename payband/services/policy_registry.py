from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from payband.errors import ClassificationError, ErrorCode
from payband.models import SchedulePolicyCode
from payband.services.policies import (
    RotatingShiftPolicy,
    SchedulePolicy,
    ShiftTemplate,
    StreakPolicy,
    WeeklyTemplate,
)
from payband.services.records import AttendanceLookup

logger = logging.getLogger("payband.policy_registry")

PolicyFactory = Callable[..., SchedulePolicy]


def _hm(hour: int, minute: int = 0) -> int:
    return hour * 60 + minute


_FULL_DAY = ShiftTemplate(_hm(7), _hm(17), 9)
_FRIDAY = ShiftTemplate(_hm(7), _hm(16), 8)
_ZERO_HOUR_WORKDAY = ShiftTemplate(_hm(7), _hm(7), 0, has_lunch=False)
_REST_DAY = ShiftTemplate(_hm(7), _hm(7), 0, has_lunch=False, is_free_day=True)

# Monday first, matching date.weekday()
WEEKLY_TEMPLATES: dict[SchedulePolicyCode, WeeklyTemplate] = {
    SchedulePolicyCode.H1_1: (_FULL_DAY, _FULL_DAY, _FULL_DAY, _FULL_DAY, _FRIDAY, _ZERO_HOUR_WORKDAY, _REST_DAY),
    SchedulePolicyCode.H1_2: (_REST_DAY, _FULL_DAY, _FULL_DAY, _FULL_DAY, _FULL_DAY, _FRIDAY, _ZERO_HOUR_WORKDAY),
    SchedulePolicyCode.H1_3: (_FULL_DAY, _FULL_DAY, _FULL_DAY, _FULL_DAY, _FRIDAY, _ZERO_HOUR_WORKDAY, _REST_DAY),
    SchedulePolicyCode.H1_4: (_FULL_DAY,) * 7,
    SchedulePolicyCode.H1_5: (
        _FULL_DAY,
        _FULL_DAY,
        _FULL_DAY,
        _FULL_DAY,
        ShiftTemplate(_hm(7), _hm(14), 6),
        _FULL_DAY,
        _REST_DAY,
    ),
    SchedulePolicyCode.H1_6: (
        *(ShiftTemplate(_hm(8), _hm(17), 9),) * 5,
        ShiftTemplate(_hm(8), _hm(12), 4, has_lunch=False),
        ShiftTemplate(_hm(8), _hm(8), 0, has_lunch=False, is_free_day=True),
    ),
    SchedulePolicyCode.H1_7: (*(ShiftTemplate(_hm(7), _hm(19), 12),) * 6, _REST_DAY),
}

POLICY_TABLE: dict[SchedulePolicyCode, PolicyFactory] = {
    **{code: partial(StreakPolicy, code=code, template=template) for code, template in WEEKLY_TEMPLATES.items()},
    SchedulePolicyCode.H2_1: RotatingShiftPolicy,
}


def build_policy(code: SchedulePolicyCode | str, lookup: AttendanceLookup, **kwargs) -> SchedulePolicy:
    raw = code.value if isinstance(code, SchedulePolicyCode) else str(code or "").strip().upper()
    try:
        factory = POLICY_TABLE[SchedulePolicyCode(raw)]
    except (ValueError, KeyError):
        raise ClassificationError(
            ErrorCode.UNKNOWN_POLICY,
            f"Schedule policy {raw!r} is not supported",
            details={"schedule_policy_code": raw},
        ) from None
    return factory(lookup, **kwargs)


async def resolve_policy(lookup: AttendanceLookup, employee_id: int, **kwargs) -> SchedulePolicy:
    employee = await lookup.get_employee(employee_id)
    if employee is None:
        raise ClassificationError(
            ErrorCode.EMPLOYEE_NOT_FOUND,
            f"Employee {employee_id} not found",
            details={"employee_id": employee_id},
        )
    if not employee.schedule_policy_code:
        raise ClassificationError(
            ErrorCode.POLICY_NOT_ASSIGNED,
            f"Employee {employee_id} has no schedule policy",
            details={"employee_id": employee_id},
        )
    policy = build_policy(employee.schedule_policy_code, lookup, **kwargs)
    logger.debug("policy_resolved", extra={"employee_id": employee_id, "policy_code": policy.code.value})
    return policy
