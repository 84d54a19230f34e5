"""
Assignment Validation

Decides whether an instructor may be bound to a (grade, section, subject) slot.

Primary tier (grades 1-3):
- section and subject are dropped; one adviser per grade, school-wide

Departmentalized tier (grades 4-6), checked in order, first failure wins:
1. Subject uniqueness across the instructor's merged bindings
2. No other instructor holds the same (grade, section, subject)
3. Fewer than 6 distinct instructors already bound to the section
4. No schedule overlap with other scheduled assignments of the section
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from uuid import UUID

import structlog

from shared.domain.bindings import Binding
from shared.domain.exceptions import (
    CapacityError,
    ConflictError,
    ScheduleConflictError,
    ValidationError,
)
from shared.domain.grades import (
    DEPARTMENTALIZED_SUBJECTS,
    MAX_INSTRUCTORS_PER_SECTION,
    GradeLevel,
    room_for_section,
    validate_section,
)
from shared.domain.schedule import Schedule, ScheduleConflictDetector
from shared.domain.subjects import SubjectUniquenessRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BindingRequest:
    """A proposed primary binding or secondary section assignment."""

    instructor_id: UUID
    grade: GradeLevel
    section: int | None = None
    subject: str | None = None
    schedule: Schedule | None = None
    is_primary: bool = True

    @property
    def room(self) -> str | None:
        if self.section is None:
            return None
        return room_for_section(self.grade, self.section)


class AssignmentValidator:
    """
    Composes schedule, capacity and subject rules with grade-tier policy.

    The caller supplies the instructor's current bindings and the peer
    bindings of the target grade (Primary tier) or section (Departmentalized).
    """

    def __init__(
        self,
        detector: ScheduleConflictDetector | None = None,
        subjects: SubjectUniquenessRegistry | None = None,
        max_instructors_per_section: int = MAX_INSTRUCTORS_PER_SECTION,
    ):
        self.detector = detector or ScheduleConflictDetector()
        self.subjects = subjects or SubjectUniquenessRegistry()
        self.max_instructors_per_section = max_instructors_per_section

    def validate(
        self,
        request: BindingRequest,
        instructor_bindings: Iterable[Binding],
        peer_bindings: Iterable[Binding],
    ) -> BindingRequest:
        """
        Validate a binding request.

        Args:
            request: Proposed binding
            instructor_bindings: Every binding the instructor currently holds
            peer_bindings: Bindings of the target grade or section (any instructor)

        Returns:
            BindingRequest: Normalized request (Primary tier has no section/subject)

        Raises:
            ValidationError: Missing or malformed input
            ConflictError: Slot or subject already owned
            CapacityError: Section already has the maximum number of instructors
        """
        own = list(instructor_bindings)
        # An edit of the primary binding replaces it, so it is not part of the state being checked against.
        if request.is_primary:
            kept = [b for b in own if not b.is_primary]
        else:
            kept = own
        others = [b for b in peer_bindings if b.instructor_id != request.instructor_id]

        self.ensure_tier_allows(request)
        if request.grade.is_primary:
            return self._validate_primary_tier(request, kept, others)
        return self._validate_departmentalized(request, own, kept, others)

    def ensure_tier_allows(self, request: BindingRequest) -> None:
        """
        Reject secondary section assignments in the Primary tier.

        Raises:
            ValidationError: If a grade 1-3 request is not a primary binding
        """
        if request.grade.is_primary and not request.is_primary:
            raise ValidationError(
                f"cannot add section assignments for grade {request.grade}; "
                "grades 1-3 have one professor who handles all sections and subjects",
                field="grade_level",
                value=str(request.grade),
            )

    def _validate_primary_tier(
        self, request: BindingRequest, kept: list[Binding], others: list[Binding]
    ) -> BindingRequest:
        holder = next((b for b in others if b.grade == request.grade), None)
        if holder is not None:
            raise ConflictError(
                f"grade already has a professor: {holder.instructor_name}",
                conflicting_instructor=holder.instructor_name,
                context={"grade_level": str(request.grade)},
            )

        if kept:
            raise ConflictError(
                "instructor still has section assignments; remove them before moving to grade "
                f"{request.grade}",
                context={"instructor_id": str(request.instructor_id), "assignments": len(kept)},
            )

        logger.debug(
            "Primary tier binding admissible",
            instructor_id=str(request.instructor_id),
            grade=request.grade.value,
        )
        return replace(request, section=None, subject=None, schedule=None)

    def _validate_departmentalized(
        self,
        request: BindingRequest,
        own: list[Binding],
        kept: list[Binding],
        others: list[Binding],
    ) -> BindingRequest:
        section = validate_section(request.section)
        subject = (request.subject or "").strip()
        if not subject:
            raise ValidationError(
                f"subject is required for grade {request.grade}", field="subject"
            )
        if subject not in DEPARTMENTALIZED_SUBJECTS:
            raise ValidationError("unknown subject", field="subject", value=subject)

        grade = request.grade

        # 1. one subject per instructor
        self.subjects.assert_bindings_allow(request.instructor_id, subject, own)

        if any(b.in_section(grade, section) for b in kept):
            raise ConflictError(
                f"instructor is already assigned to grade {grade} - section {section}",
                context={"instructor_id": str(request.instructor_id)},
            )

        # 2. one instructor per (grade, section, subject)
        holder = next((b for b in others if b.holds_slot(grade, section, subject)), None)
        if holder is not None:
            raise ConflictError(
                f"subject already taken in this section: {subject} is taught by "
                f"{holder.instructor_name} in grade {grade} - section {section}",
                conflicting_instructor=holder.instructor_name,
                conflicting_subject=subject,
            )

        # 3. instructor ceiling per section
        staff = {b.instructor_id for b in others if b.in_section(grade, section)}
        if len(staff) >= self.max_instructors_per_section:
            raise CapacityError(
                f"section full ({len(staff)}/{self.max_instructors_per_section} professors)",
                current=len(staff),
                maximum=self.max_instructors_per_section,
                context={"grade_level": str(grade), "section": section},
            )

        # 4. schedule overlap inside the section
        if request.schedule is not None:
            scheduled = [
                b.schedule for b in others if b.in_section(grade, section) and b.schedule is not None
            ]
            clash = self.detector.find_conflict(scheduled, request.schedule)
            if clash is not None:
                raise ScheduleConflictError(
                    f"time conflict: another professor already has a class in grade {grade} - "
                    f"section {section} during {request.schedule.describe()}",
                    context={"existing_schedule": clash.describe()},
                )

        logger.debug(
            "Departmentalized binding admissible",
            instructor_id=str(request.instructor_id),
            grade=grade.value,
            section=section,
            subject=subject,
        )
        return replace(request, section=section, subject=subject)
