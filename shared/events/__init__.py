"""
Outbound Domain Events

Events produced by enrollment transitions and instructor binding changes,
published to subscribers after the producing transaction commits.
"""

from shared.events.academic_events import (
    EnrollmentApprovedEvent,
    EnrollmentRejectedEvent,
    InstructorBoundEvent,
    InstructorDeletedEvent,
    SectionAssignmentRemovedEvent,
    StudentReassignedEvent,
    StudentRemovedFromSectionEvent,
)
from shared.events.base import DomainEvent, EventMetadata

__all__ = [
    # Base Events
    "DomainEvent",
    "EventMetadata",
    # Enrollment
    "EnrollmentApprovedEvent",
    "EnrollmentRejectedEvent",
    "StudentRemovedFromSectionEvent",
    "StudentReassignedEvent",
    # Instructors
    "InstructorBoundEvent",
    "SectionAssignmentRemovedEvent",
    "InstructorDeletedEvent",
]
