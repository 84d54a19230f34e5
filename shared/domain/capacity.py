"""
Section Capacity

Tracks per-(grade, section) occupancy against the fixed student ceiling.
Occupancy itself is read from the store by the caller; this module only decides.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from shared.domain.exceptions import CapacityError
from shared.domain.grades import SECTION_CAPACITY, SECTION_NUMBERS, GradeLevel

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SectionAvailability:
    """Sections of a grade that still have room, plus raw counts for display."""

    grade: GradeLevel
    available: list[int]
    occupancy: dict[int, int] = field(default_factory=dict)
    capacity: int = SECTION_CAPACITY

    def seats_left(self, section: int) -> int:
        return max(0, self.capacity - self.occupancy.get(section, 0))


class CapacityManager:
    """Admission checks against the per-section student ceiling."""

    def __init__(self, capacity: int = SECTION_CAPACITY, sections: tuple[int, ...] = SECTION_NUMBERS):
        self.capacity = capacity
        self.sections = sections

    def can_admit(self, grade: GradeLevel, section: int, current_count: int) -> bool:
        """Check if one more approved enrollment fits in the section."""
        return current_count < self.capacity

    def ensure_can_admit(self, grade: GradeLevel, section: int, current_count: int) -> None:
        """
        Require room for one more approved enrollment.

        Raises:
            CapacityError: If the section is already at capacity
        """
        if self.can_admit(grade, section, current_count):
            return

        logger.warning(
            "Section at capacity",
            grade=grade.value,
            section=section,
            current=current_count,
            capacity=self.capacity,
        )
        raise CapacityError(
            f"section full ({current_count}/{self.capacity})",
            current=current_count,
            maximum=self.capacity,
            context={"grade_level": str(grade), "section": section},
        )

    def available_sections(self, grade: GradeLevel, occupancy: Mapping[int, int]) -> SectionAvailability:
        """List sections (in order) whose occupancy is below the ceiling."""
        counts = {section: int(occupancy.get(section, 0)) for section in self.sections}
        available = [
            section for section in self.sections if self.can_admit(grade, section, counts[section])
        ]
        return SectionAvailability(
            grade=grade, available=available, occupancy=counts, capacity=self.capacity
        )
