"""
Grade Levels and Fixed School Catalogues

Grade levels arrive string-encoded ("1".."6"). They are parsed once at the
boundary into a GradeLevel, which carries its GradeTier and the derived
shift/time window used by enrollment notices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from shared.domain.exceptions import ValidationError

MIN_GRADE = 1
MAX_GRADE = 6

SECTIONS_PER_GRADE = 8
SECTION_NUMBERS = tuple(range(1, SECTIONS_PER_GRADE + 1))
TOTAL_SECTIONS = SECTIONS_PER_GRADE * (MAX_GRADE - MIN_GRADE + 1)

SECTION_CAPACITY = 40
MAX_INSTRUCTORS_PER_SECTION = 6

ALL_SUBJECTS = "All Subjects"
DEPARTMENTALIZED_SUBJECTS = ("Math", "Science", "English", "Filipino", "Social Studies", "MAPEH")

CLASS_DAYS = "Monday to Friday"


class GradeTier(str, Enum):
    """Grouping of grade levels that decides assignment cardinality rules."""

    PRIMARY = "primary"  # grades 1-3, one adviser per grade
    DEPARTMENTALIZED = "departmentalized"  # grades 4-6, one instructor per subject per section


class Shift(str, Enum):
    """Half-day shift a grade attends."""

    MORNING = "Morning"
    AFTERNOON = "Afternoon"

    @property
    def time_window(self) -> str:
        """Fixed class hours for the shift."""
        return _TIME_WINDOWS[self]


_TIME_WINDOWS = {
    Shift.MORNING: "7:00 AM - 12:00 PM",
    Shift.AFTERNOON: "1:00 PM - 6:00 PM",
}


@dataclass(frozen=True, order=True)
class GradeLevel:
    """A validated grade level between 1 and 6."""

    value: int

    @classmethod
    def parse(cls, raw: Any) -> "GradeLevel":
        """
        Parse a string- or int-encoded grade level.

        Raises:
            ValidationError: If the value is not an integer in 1..6
        """
        if isinstance(raw, GradeLevel):
            return raw
        if isinstance(raw, bool):
            raise ValidationError("invalid grade level", field="grade_level", value=raw)

        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            raise ValidationError("invalid grade level", field="grade_level", value=raw)

        if not MIN_GRADE <= value <= MAX_GRADE:
            raise ValidationError("invalid grade level", field="grade_level", value=raw)

        return cls(value)

    @property
    def tier(self) -> GradeTier:
        if self.value <= 3:
            return GradeTier.PRIMARY
        return GradeTier.DEPARTMENTALIZED

    @property
    def is_primary(self) -> bool:
        return self.tier is GradeTier.PRIMARY

    @property
    def shift(self) -> Shift:
        return Shift.MORNING if self.value % 2 == 0 else Shift.AFTERNOON

    @property
    def required_subjects(self) -> tuple[str, ...]:
        """Subjects an approved enrollment must have an instructor for."""
        if self.is_primary:
            return (ALL_SUBJECTS,)
        return DEPARTMENTALIZED_SUBJECTS

    def __str__(self) -> str:
        return str(self.value)


def validate_section(section: Any, field: str = "section") -> int:
    """
    Validate a section number (1..8).

    Raises:
        ValidationError: If the section is missing or out of range
    """
    if section is None or isinstance(section, bool):
        raise ValidationError("section is required", field=field)

    try:
        number = int(section)
    except (TypeError, ValueError):
        raise ValidationError("invalid section", field=field, value=section)

    if number not in SECTION_NUMBERS:
        raise ValidationError(
            f"section must be between 1 and {SECTIONS_PER_GRADE}", field=field, value=section
        )
    return number


def room_for_section(grade: GradeLevel, section: int) -> str:
    """Deterministic room lookup for a (grade, section) pair, e.g. grade 5 section 2 -> Room 502."""
    return f"Room {grade.value}{section:02d}"
