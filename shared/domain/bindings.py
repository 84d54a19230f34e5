"""
Instructor Bindings

A binding ties an instructor to a (grade, section, subject) slot. Each
instructor has at most one primary binding and any number of secondary
section assignments; all checks run over the merged collection.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from shared.domain.grades import ALL_SUBJECTS, GradeLevel, Shift
from shared.domain.schedule import Schedule


@dataclass(frozen=True)
class Binding:
    """One entry of the merged instructor binding view."""

    instructor_id: UUID
    instructor_name: str
    grade: GradeLevel
    section: int | None
    subject: str | None
    is_primary: bool
    room: str | None = None
    schedule: Schedule | None = None
    assignment_id: UUID | None = None

    def holds_slot(self, grade: GradeLevel, section: int | None, subject: str | None) -> bool:
        return self.grade == grade and self.section == section and self.subject == subject

    def in_section(self, grade: GradeLevel, section: int | None) -> bool:
        return self.grade == grade and self.section == section


def bound_subjects(bindings: Iterable[Binding]) -> set[str]:
    """Distinct subjects fixed by a set of bindings (unsubjected primary-tier bindings are skipped)."""
    return {binding.subject for binding in bindings if binding.subject}


def sort_bindings(bindings: Iterable[Binding]) -> list[Binding]:
    """Primary binding first, then by grade and section."""
    return sorted(
        bindings,
        key=lambda b: (not b.is_primary, b.grade.value, b.section or 0, b.subject or ""),
    )


@dataclass(frozen=True)
class ClassEntry:
    """One instructor's class as shown on a grade's schedule."""

    instructor_id: UUID
    instructor_name: str
    subject: str
    section: int | None
    room: str | None
    time_slot: str


@dataclass(frozen=True)
class GradeSchedule:
    """Shift, class hours and teaching staff of one grade."""

    grade: GradeLevel
    shift: Shift
    time_window: str
    classes: list[ClassEntry] = field(default_factory=list)


def grade_schedule(grade: GradeLevel, bindings: Iterable[Binding]) -> GradeSchedule:
    """
    Build a grade's schedule overview from its bindings, ordered by section then subject.

    Classes without their own weekly schedule run for the whole shift.
    """
    shift = grade.shift
    classes = [
        ClassEntry(
            instructor_id=b.instructor_id,
            instructor_name=b.instructor_name,
            subject=b.subject or ALL_SUBJECTS,
            section=b.section,
            room=b.room,
            time_slot=b.schedule.describe() if b.schedule else shift.time_window,
        )
        for b in sorted(
            (b for b in bindings if b.grade == grade),
            key=lambda b: (b.section or 0, b.subject or "", b.instructor_name),
        )
    ]
    return GradeSchedule(grade=grade, shift=shift, time_window=shift.time_window, classes=classes)
