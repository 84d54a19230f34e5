"""
Academic Domain Events

Events emitted by enrollment transitions and instructor binding changes.
Approval and rejection events carry everything the notification templates need.
"""

from typing import ClassVar
from uuid import UUID

from pydantic import Field

from shared.events.base import DomainEvent


class EnrollmentApprovedEvent(DomainEvent):
    """Emitted when a pending enrollment is approved into a section."""

    EVENT_TYPE: ClassVar[str] = "academic.enrollment.approved"

    aggregate_type: str = "Enrollment"
    student_name: str = Field(...)
    parent_name: str | None = Field(default=None)
    contact_email: str | None = Field(default=None)
    grade_level: str = Field(...)
    section: int = Field(...)
    room: str = Field(...)
    shift: str = Field(...)
    time_window: str = Field(...)
    adviser: str | None = Field(default=None, description="Primary tier adviser name")
    teachers: dict[str, str] = Field(
        default_factory=dict, description="Departmentalized subject -> instructor name"
    )


class EnrollmentRejectedEvent(DomainEvent):
    """Emitted when an enrollment application is declined."""

    EVENT_TYPE: ClassVar[str] = "academic.enrollment.rejected"

    aggregate_type: str = "Enrollment"
    student_name: str = Field(...)
    parent_name: str | None = Field(default=None)
    contact_email: str | None = Field(default=None)
    previous_status: str = Field(...)


class StudentRemovedFromSectionEvent(DomainEvent):
    """Emitted when an approved student is taken out of their section."""

    EVENT_TYPE: ClassVar[str] = "academic.enrollment.removed_from_section"

    aggregate_type: str = "Enrollment"
    student_name: str = Field(...)
    grade_level: str = Field(...)
    section: int = Field(...)


class StudentReassignedEvent(DomainEvent):
    """Emitted when a student is placed into a (new) section."""

    EVENT_TYPE: ClassVar[str] = "academic.enrollment.reassigned"

    aggregate_type: str = "Enrollment"
    student_name: str = Field(...)
    grade_level: str = Field(...)
    from_section: int | None = Field(default=None)
    to_section: int = Field(...)


class InstructorBoundEvent(DomainEvent):
    """Emitted when an instructor binding is created or edited."""

    EVENT_TYPE: ClassVar[str] = "academic.instructor.bound"

    aggregate_type: str = "Instructor"
    grade_level: str = Field(...)
    section: int | None = Field(default=None)
    subject: str | None = Field(default=None)
    room: str | None = Field(default=None)
    is_primary: bool = Field(...)
    assignment_id: UUID | None = Field(default=None)


class SectionAssignmentRemovedEvent(DomainEvent):
    """Emitted when a secondary section assignment is removed."""

    EVENT_TYPE: ClassVar[str] = "academic.instructor.assignment_removed"

    aggregate_type: str = "Instructor"
    assignment_id: UUID = Field(...)
    grade_level: str = Field(...)
    section: int | None = Field(default=None)


class InstructorDeletedEvent(DomainEvent):
    """Emitted when an instructor account and its bindings are removed."""

    EVENT_TYPE: ClassVar[str] = "academic.instructor.deleted"

    aggregate_type: str = "Instructor"
    full_name: str = Field(...)
    removed_assignments: int = Field(default=0)
