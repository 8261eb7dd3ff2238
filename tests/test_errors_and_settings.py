from __future__ import annotations

import json
import logging
import unittest
from unittest.mock import patch

from payband.errors import ClassificationError, ErrorCode, error_payload
from payband.logging_utils import JsonFormatter, setup_json_logging
from payband.services.buckets import BucketAccumulator, LeaveCode, leave_code_for, minutes_to_hours
from payband.services.records import JobRef
from payband.settings import DEFAULT_ATTENDANCE_TIMEZONE, Settings, resolve_timezone


class ErrorPayloadTests(unittest.TestCase):
    def test_payload_shape(self) -> None:
        exc = ClassificationError(ErrorCode.UNBALANCED_DAY, "off by 15", details={"date": "2024-01-01"})

        self.assertEqual(
            error_payload(exc),
            {"error": {"code": "UNBALANCED_DAY", "message": "off by 15", "details": {"date": "2024-01-01"}}},
        )
        self.assertEqual(str(exc), "[UNBALANCED_DAY] off by 15")

    def test_details_default_to_empty(self) -> None:
        self.assertEqual(ClassificationError(ErrorCode.INVALID_RANGE, "bad").details, {})


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.attendance_timezone, DEFAULT_ATTENDANCE_TIMEZONE)
        self.assertEqual(settings.streak_lookback_days, 30)
        self.assertEqual(settings.rotating_rollover_weekday, 1)
        self.assertEqual(settings.rotating_rollover_night_minutes, 360)

    def test_environment_overrides(self) -> None:
        with patch.dict("os.environ", {"STREAK_LOOKBACK_DAYS": "7", "ATTENDANCE_TIMEZONE": "UTC"}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.streak_lookback_days, 7)
        self.assertEqual(settings.attendance_timezone, "UTC")

    def test_invalid_timezone_falls_back(self) -> None:
        self.assertEqual(resolve_timezone("Not/AZone").key, DEFAULT_ATTENDANCE_TIMEZONE)
        self.assertEqual(resolve_timezone("").key, DEFAULT_ATTENDANCE_TIMEZONE)
        self.assertEqual(resolve_timezone("UTC").key, "UTC")


class BucketTests(unittest.TestCase):
    def test_leave_codes(self) -> None:
        self.assertEqual(leave_code_for(JobRef("E01", "Disability")), LeaveCode.DISABILITY)
        self.assertEqual(leave_code_for(JobRef("e05", "Absence")), LeaveCode.ABSENCE)
        self.assertEqual(leave_code_for(JobRef("E07", "Comp")), LeaveCode.COMPENSATORY)
        self.assertEqual(leave_code_for(JobRef("J10", "Welding"), is_compensatory=True), LeaveCode.COMPENSATORY)
        self.assertIsNone(leave_code_for(JobRef("J10", "Welding")))
        self.assertIsNone(leave_code_for(None))

    def test_accumulator_merge_and_total(self) -> None:
        first = BucketAccumulator(normal=540, lunch=60, free=840)
        second = BucketAccumulator(free=1380, p100=60)
        second.add_leave(LeaveCode.VACATION, 0)

        first.merge(second)

        self.assertEqual(first.total(), 2 * 1440)
        self.assertEqual(first.as_dict()["p100"], 60)
        self.assertEqual(first.as_dict()["vacation"], 0)
        with self.assertRaises(KeyError):
            first.add("overtime", 15)

    def test_minutes_to_hours(self) -> None:
        self.assertEqual(minutes_to_hours(315), 5.25)
        self.assertEqual(minutes_to_hours(20), 0.33)


class JsonFormatterTests(unittest.TestCase):
    def test_extra_fields_are_serialized(self) -> None:
        record = logging.LogRecord("payband.policies", logging.INFO, __file__, 1, "range_classified", None, None)
        record.employee_id = 5

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["event"], "range_classified")
        self.assertEqual(payload["logger"], "payband.policies")
        self.assertEqual(payload["employee_id"], 5)

    def test_library_loggers_install_no_handlers(self) -> None:
        import payband.services.hours  # noqa: F401

        for name in ("payband.policies", "payband.apportionment", "payband.sql_lookup"):
            self.assertEqual(logging.getLogger(name).handlers, [])

    def test_setup_installs_json_handler(self) -> None:
        root_logger = logging.getLogger()
        saved_handlers, saved_level = list(root_logger.handlers), root_logger.level
        try:
            setup_json_logging("debug")
            self.assertEqual(len(root_logger.handlers), 1)
            self.assertIsInstance(root_logger.handlers[0].formatter, JsonFormatter)
            self.assertEqual(root_logger.level, logging.DEBUG)
        finally:
            root_logger.handlers[:] = saved_handlers
            root_logger.setLevel(saved_level)


if __name__ == "__main__":
    unittest.main()
