"""Unit tests for schedule parsing and conflict detection."""

from datetime import time

import pytest

from shared.domain.exceptions import ValidationError
from shared.domain.schedule import Schedule, ScheduleConflictDetector, parse_time


def sched(days: str, start: str, end: str) -> Schedule:
    return Schedule.from_fields(days, start, end)


@pytest.fixture
def detector() -> ScheduleConflictDetector:
    return ScheduleConflictDetector()


@pytest.mark.unit
class TestScheduleFromFields:
    """Tests for building schedules from raw input."""

    def test_all_fields_blank_means_unscheduled(self):
        assert Schedule.from_fields(None, None, None) is None
        assert Schedule.from_fields([], "", "  ") is None

    def test_complete_schedule_is_parsed(self):
        schedule = sched("Monday, Wednesday", "08:00", "09:30")

        assert schedule.days == frozenset({"Monday", "Wednesday"})
        assert schedule.start == time(8, 0)
        assert schedule.end == time(9, 30)

    def test_seconds_are_accepted(self):
        assert sched("Friday", "13:00:00", "14:00:00").start == time(13, 0)

    @pytest.mark.parametrize(
        "days,start,end",
        [
            (["Monday"], "08:00", None),
            (None, "08:00", "09:00"),
            (["Monday"], None, None),
        ],
    )
    def test_partial_schedule_is_rejected(self, days, start, end):
        with pytest.raises(ValidationError, match="incomplete schedule"):
            Schedule.from_fields(days, start, end)

    def test_end_must_be_after_start(self):
        with pytest.raises(ValidationError, match="end time must be after start time"):
            sched("Monday", "10:00", "10:00")

        with pytest.raises(ValidationError, match="end time must be after start time"):
            sched("Monday", "11:00", "10:00")

    def test_bad_time_format(self):
        with pytest.raises(ValidationError, match="invalid time format"):
            parse_time("8am")


@pytest.mark.unit
class TestScheduleConflictDetector:
    """Tests for overlap detection."""

    def test_disjoint_days_never_conflict(self, detector):
        existing = [sched("Monday", "08:00", "10:00")]
        assert not detector.conflicts(existing, sched("Tuesday", "08:00", "10:00"))

    def test_overlapping_days_and_times_conflict(self, detector):
        existing = [sched("Monday, Friday", "08:00", "10:00")]
        clash = detector.find_conflict(existing, sched("Friday", "09:00", "11:00"))

        assert clash == existing[0]

    def test_touching_endpoints_do_not_conflict(self, detector):
        existing = [sched("Monday", "08:00", "09:00")]

        assert not detector.conflicts(existing, sched("Monday", "09:00", "10:00"))
        assert not detector.conflicts(existing, sched("Monday", "07:00", "08:00"))

    def test_contained_interval_conflicts(self, detector):
        existing = [sched("Thursday", "08:00", "12:00")]
        assert detector.conflicts(existing, sched("Thursday", "09:00", "10:00"))

    def test_unscheduled_candidate_never_conflicts(self, detector):
        existing = [sched("Monday", "08:00", "09:00")]
        assert detector.find_conflict(existing, None) is None

    def test_raw_triples_are_accepted(self, detector):
        existing = [(["Monday"], "08:00", "09:00"), None]
        assert detector.conflicts(existing, (["Monday"], "08:30", "09:30"))

    def test_malformed_existing_schedule_is_reported(self, detector):
        with pytest.raises(ValidationError):
            detector.conflicts([(["Monday"], "08:00", None)], sched("Monday", "08:00", "09:00"))
