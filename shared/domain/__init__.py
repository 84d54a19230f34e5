"""
Enrollment Domain

Pure decision layer for instructor assignment and section capacity.
No I/O: callers load the current state, the domain decides, callers persist.

- GradeLevel / GradeTier: grades 1-3 (one adviser per grade) and 4-6 (one
  instructor per section subject)
- Schedule / ScheduleConflictDetector: weekly time blocks and overlap checks
- CapacityManager: 40 approved students per section
- SubjectUniquenessRegistry: one subject per instructor, school-wide
- AssignmentValidator: ordered admission checks for instructor bindings
- EnrollmentStateMachine: pending / approved / rejected lifecycle
"""

from shared.domain.assignments import AssignmentValidator, BindingRequest
from shared.domain.bindings import Binding, ClassEntry, GradeSchedule, grade_schedule
from shared.domain.capacity import CapacityManager, SectionAvailability
from shared.domain.enrollment import (
    EnrollmentStateMachine,
    EnrollmentStatus,
    SubjectEnrollment,
    TransitionResult,
)
from shared.domain.grades import GradeLevel, GradeTier, Shift, room_for_section
from shared.domain.schedule import Schedule, ScheduleConflictDetector
from shared.domain.subjects import SubjectUniquenessRegistry

__all__ = [
    # Grades
    "GradeLevel",
    "GradeTier",
    "Shift",
    "room_for_section",
    # Scheduling
    "Schedule",
    "ScheduleConflictDetector",
    # Capacity
    "CapacityManager",
    "SectionAvailability",
    # Assignments
    "Binding",
    "ClassEntry",
    "GradeSchedule",
    "grade_schedule",
    "BindingRequest",
    "AssignmentValidator",
    "SubjectUniquenessRegistry",
    # Enrollment
    "EnrollmentStateMachine",
    "EnrollmentStatus",
    "SubjectEnrollment",
    "TransitionResult",
]
