"""
Enrollment State Machine

Lifecycle of a student enrollment record:

    pending --approve--> approved --remove_from_section--> pending
    pending --reject---> rejected (terminal, retained)
    approved --reassign--> approved (new section)
    pending --reassign--> approved (only after an earlier approval, i.e. a removed student)

Guards run before any mutation, so a failed transition leaves the record
untouched. Transitions return the records to persist and the outbound
events to publish after commit.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

import structlog

from shared.domain.capacity import CapacityManager
from shared.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from shared.domain.grades import (
    ALL_SUBJECTS,
    GradeLevel,
    room_for_section,
    validate_section,
)
from shared.events.academic_events import (
    EnrollmentApprovedEvent,
    EnrollmentRejectedEvent,
    StudentReassignedEvent,
    StudentRemovedFromSectionEvent,
)
from shared.events.base import DomainEvent, EventMetadata

logger = structlog.get_logger(__name__)


class EnrollmentStatus(str, Enum):
    """Enrollment record status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EnrollmentRecord(Protocol):
    """Attributes of an enrollment the state machine reads and writes."""

    id: UUID
    student_name: str
    grade_level: str
    section: int | None
    status: str
    parent_name: str | None
    contact_email: str | None


@dataclass(frozen=True)
class SubjectEnrollment:
    """Binding of an approved enrollment to one (subject, instructor) pair."""

    enrollment_id: UUID
    subject: str
    instructor_id: UUID
    enrolled_at: datetime


@dataclass
class TransitionResult:
    """Outcome of a committed transition."""

    enrollment: Any
    subject_enrollments: list[SubjectEnrollment] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)


class EnrollmentStateMachine:
    """Governs enrollment status transitions and their admission checks."""

    def __init__(self, capacity: CapacityManager | None = None):
        self.capacity = capacity or CapacityManager()

    def approve(
        self,
        enrollment: EnrollmentRecord,
        section: int,
        bindings: Mapping[str, UUID],
        occupancy: int,
        instructor_names: Mapping[UUID, str],
        actor_id: UUID | None = None,
    ) -> TransitionResult:
        """
        Approve a pending enrollment into a section with its instructor bindings.

        Args:
            enrollment: Record to transition
            section: Destination section
            bindings: Subject -> instructor id ("All Subjects" for grades 1-3)
            occupancy: Approved enrollments already in the destination section
            instructor_names: Names of the instructors referenced by bindings
            actor_id: Admin performing the approval

        Raises:
            InvalidStateError: If the enrollment is not pending
            ValidationError: Invalid section, or a required subject has no instructor
            CapacityError: If the destination section is full
            NotFoundError: If a referenced instructor does not exist
        """
        status = EnrollmentStatus(enrollment.status)
        if status is not EnrollmentStatus.PENDING:
            raise InvalidStateError(
                "this enrollment has already been processed",
                current_state=status.value,
                context={"enrollment_id": str(enrollment.id)},
            )

        grade = GradeLevel.parse(enrollment.grade_level)
        section = validate_section(section)
        chosen = self._complete_bindings(grade, bindings)

        self.capacity.ensure_can_admit(grade, section, occupancy)

        for subject, instructor_id in chosen.items():
            if instructor_id not in instructor_names:
                raise NotFoundError(
                    "Instructor", str(instructor_id), context={"subject": subject}
                )

        now = datetime.utcnow()
        enrollment.status = EnrollmentStatus.APPROVED.value
        enrollment.section = section

        records = [
            SubjectEnrollment(
                enrollment_id=enrollment.id,
                subject=subject,
                instructor_id=instructor_id,
                enrolled_at=now,
            )
            for subject, instructor_id in chosen.items()
        ]

        if grade.is_primary:
            adviser = instructor_names[chosen[ALL_SUBJECTS]]
            teachers: dict[str, str] = {}
        else:
            adviser = None
            teachers = {subject: instructor_names[iid] for subject, iid in sorted(chosen.items())}

        event = EnrollmentApprovedEvent(
            metadata=EventMetadata(user_id=actor_id),
            aggregate_id=enrollment.id,
            student_name=enrollment.student_name,
            parent_name=enrollment.parent_name,
            contact_email=enrollment.contact_email,
            grade_level=str(grade),
            section=section,
            room=room_for_section(grade, section),
            shift=grade.shift.value,
            time_window=grade.shift.time_window,
            adviser=adviser,
            teachers=teachers,
        )

        logger.info(
            "Enrollment approved",
            enrollment_id=str(enrollment.id),
            grade=grade.value,
            section=section,
            subjects=len(records),
        )
        return TransitionResult(enrollment=enrollment, subject_enrollments=records, events=[event])

    def reject(
        self,
        enrollment: EnrollmentRecord,
        require_pending: bool = False,
        actor_id: UUID | None = None,
    ) -> TransitionResult:
        """
        Reject an enrollment.

        The source state is left to caller policy: by default any record may be
        rejected; with require_pending only pending records are accepted.

        Raises:
            InvalidStateError: If require_pending is set and the record is not pending
        """
        previous = EnrollmentStatus(enrollment.status)
        if require_pending and previous is not EnrollmentStatus.PENDING:
            raise InvalidStateError(
                "only pending enrollments can be rejected",
                current_state=previous.value,
                context={"enrollment_id": str(enrollment.id)},
            )

        enrollment.status = EnrollmentStatus.REJECTED.value
        enrollment.section = None

        event = EnrollmentRejectedEvent(
            metadata=EventMetadata(user_id=actor_id),
            aggregate_id=enrollment.id,
            student_name=enrollment.student_name,
            parent_name=enrollment.parent_name,
            contact_email=enrollment.contact_email,
            previous_status=previous.value,
        )

        logger.info(
            "Enrollment rejected",
            enrollment_id=str(enrollment.id),
            previous_status=previous.value,
        )
        return TransitionResult(enrollment=enrollment, events=[event])

    def remove_from_section(
        self, enrollment: EnrollmentRecord, actor_id: UUID | None = None
    ) -> TransitionResult:
        """
        Take an approved student out of their section; the record returns to pending.

        Subject enrollment history is kept.

        Raises:
            InvalidStateError: If the enrollment is not approved
        """
        status = EnrollmentStatus(enrollment.status)
        if status is not EnrollmentStatus.APPROVED or enrollment.section is None:
            raise InvalidStateError(
                "only approved enrollments can be removed from a section",
                current_state=status.value,
                context={"enrollment_id": str(enrollment.id)},
            )

        previous_section = enrollment.section
        enrollment.section = None
        enrollment.status = EnrollmentStatus.PENDING.value

        event = StudentRemovedFromSectionEvent(
            metadata=EventMetadata(user_id=actor_id),
            aggregate_id=enrollment.id,
            student_name=enrollment.student_name,
            grade_level=str(enrollment.grade_level),
            section=previous_section,
        )

        logger.info(
            "Student removed from section",
            enrollment_id=str(enrollment.id),
            grade=str(enrollment.grade_level),
            section=previous_section,
        )
        return TransitionResult(enrollment=enrollment, events=[event])

    def reassign(
        self,
        enrollment: EnrollmentRecord,
        new_section: int,
        occupancy: int,
        has_history: bool = False,
        actor_id: UUID | None = None,
    ) -> TransitionResult:
        """
        Place a student into a new section.

        A pending record is only placeable when it was approved before and later
        removed from its section; its subject enrollments are that history.

        Args:
            enrollment: Record to move
            new_section: Destination section
            occupancy: Approved enrollments in the destination, excluding this one
            has_history: Whether subject enrollments exist for this record

        Raises:
            InvalidStateError: If the enrollment was rejected, or is pending and never approved
            ValidationError: If the section is out of range
            CapacityError: If the destination section is full
        """
        status = EnrollmentStatus(enrollment.status)
        if status is EnrollmentStatus.REJECTED:
            raise InvalidStateError(
                "rejected enrollments cannot be placed in a section",
                current_state=status.value,
                context={"enrollment_id": str(enrollment.id)},
            )
        if status is EnrollmentStatus.PENDING and not has_history:
            raise InvalidStateError(
                "this enrollment has not been approved yet; approve it with its instructors first",
                current_state=status.value,
                context={"enrollment_id": str(enrollment.id)},
            )

        grade = GradeLevel.parse(enrollment.grade_level)
        section = validate_section(new_section, field="new_section")
        self.capacity.ensure_can_admit(grade, section, occupancy)

        previous_section = enrollment.section
        enrollment.section = section
        enrollment.status = EnrollmentStatus.APPROVED.value

        event = StudentReassignedEvent(
            metadata=EventMetadata(user_id=actor_id),
            aggregate_id=enrollment.id,
            student_name=enrollment.student_name,
            grade_level=str(grade),
            from_section=previous_section,
            to_section=section,
        )

        logger.info(
            "Student reassigned",
            enrollment_id=str(enrollment.id),
            grade=grade.value,
            from_section=previous_section,
            to_section=section,
        )
        return TransitionResult(enrollment=enrollment, events=[event])

    def _complete_bindings(self, grade: GradeLevel, bindings: Mapping[str, UUID]) -> dict[str, UUID]:
        """Require exactly one instructor for every subject the grade needs."""
        required = grade.required_subjects

        unknown = sorted(set(bindings) - set(required))
        if unknown:
            raise ValidationError(
                f"unknown subject for grade {grade}: {unknown[0]}",
                field="bindings",
                value=unknown[0],
            )

        for subject in required:
            if not bindings.get(subject):
                raise ValidationError(
                    f"please select a professor for {subject}",
                    field="bindings",
                    value=subject,
                )

        return {subject: bindings[subject] for subject in required}
