"""
Schedule Conflict Detection

Weekly schedules attached to section assignments. Scheduling is opt-in:
an assignment either carries a complete (days, start, end) triple or none.

Two schedules conflict when:
1. Their day sets intersect
2. Their half-open time intervals overlap (touching endpoints are fine)
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any

import structlog

from shared.domain.exceptions import ValidationError

logger = structlog.get_logger(__name__)

TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_time(raw: Any) -> time:
    """
    Parse an HH:MM (or HH:MM:SS) time string.

    Raises:
        ValidationError: If the value cannot be parsed
    """
    if isinstance(raw, time):
        return raw

    text = str(raw).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue

    raise ValidationError("invalid time format", field="time", value=raw)


def parse_days(raw: Any) -> frozenset[str]:
    """Normalize a comma separated string or an iterable of day names."""
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = list(raw)
    return frozenset(str(day).strip() for day in items if str(day).strip())


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Iterable):
        return not any(str(day).strip() for day in value)
    return False


@dataclass(frozen=True)
class Schedule:
    """A weekly recurring time block."""

    days: frozenset[str]
    start: time
    end: time

    @classmethod
    def from_fields(cls, days: Any, start: Any, end: Any) -> "Schedule | None":
        """
        Build a schedule from raw input fields.

        Returns None when no field is given (the assignment is unscheduled).

        Raises:
            ValidationError: If only some fields are given, a time cannot be
                parsed, or the end is not after the start
        """
        given = [not _is_blank(value) for value in (days, start, end)]
        if not any(given):
            return None
        if not all(given):
            raise ValidationError("incomplete schedule", field="schedule")

        start_time = parse_time(start)
        end_time = parse_time(end)
        if start_time >= end_time:
            raise ValidationError(
                "end time must be after start time",
                field="end_time",
                value=f"{start_time:%H:%M}-{end_time:%H:%M}",
            )

        return cls(days=parse_days(days), start=start_time, end=end_time)

    def overlaps_with(self, other: "Schedule") -> bool:
        """Check if this schedule overlaps another one."""
        if not self.days & other.days:
            return False
        return self.start < other.end and self.end > other.start

    def describe(self) -> str:
        """Human readable form, e.g. 'Friday, Monday: 08:00 - 09:00'."""
        return f"{', '.join(sorted(self.days))}: {self.start:%H:%M} - {self.end:%H:%M}"


ScheduleInput = Schedule | tuple[Any, Any, Any] | None


def coerce_schedule(value: ScheduleInput) -> Schedule | None:
    """Accept either a Schedule or a raw (days, start, end) triple."""
    if value is None or isinstance(value, Schedule):
        return value
    days, start, end = value
    return Schedule.from_fields(days, start, end)


class ScheduleConflictDetector:
    """Pure overlap check between a candidate schedule and existing ones."""

    def find_conflict(
        self, existing: Iterable[ScheduleInput], candidate: ScheduleInput
    ) -> Schedule | None:
        """
        Return the first existing schedule that overlaps the candidate.

        Raises:
            ValidationError: If any schedule is incomplete or malformed
        """
        candidate_schedule = coerce_schedule(candidate)
        if candidate_schedule is None:
            return None

        for item in existing:
            schedule = coerce_schedule(item)
            if schedule is None:
                continue
            if candidate_schedule.overlaps_with(schedule):
                logger.debug(
                    "Schedule overlap detected",
                    candidate=candidate_schedule.describe(),
                    existing=schedule.describe(),
                )
                return schedule

        return None

    def conflicts(self, existing: Iterable[ScheduleInput], candidate: ScheduleInput) -> bool:
        """Check whether the candidate overlaps any existing schedule."""
        return self.find_conflict(existing, candidate) is not None
