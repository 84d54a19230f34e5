"""
Instructor Assignment Service

Binds instructors to grades, sections and subjects. Every write runs in one
transaction while holding the instructor's lock and the lock of the grade
(Primary tier) or section (Departmentalized tier) it targets.
"""

from collections import defaultdict
from typing import Any
from uuid import UUID

import structlog

from services.enrollment_service.notifications import NotificationDispatcher
from services.enrollment_service.store import Store
from shared.concurrency.locking import (
    KeyedLockManager,
    grade_key,
    instructor_key,
    section_staff_key,
)
from shared.domain.assignments import AssignmentValidator, BindingRequest
from shared.domain.bindings import Binding, GradeSchedule, grade_schedule
from shared.domain.exceptions import NotFoundError
from shared.domain.grades import ALL_SUBJECTS, MAX_GRADE, MIN_GRADE, GradeLevel, validate_section
from shared.domain.schedule import Schedule
from shared.events.academic_events import (
    InstructorBoundEvent,
    InstructorDeletedEvent,
    SectionAssignmentRemovedEvent,
)
from shared.events.base import DomainEvent, EventMetadata

logger = structlog.get_logger(__name__)


class AssignmentService:
    """Instructor binding operations."""

    def __init__(
        self,
        store: Store,
        locks: KeyedLockManager,
        validator: AssignmentValidator | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.store = store
        self.locks = locks
        self.validator = validator or AssignmentValidator()
        self.dispatcher = dispatcher

    async def assign_primary(
        self,
        instructor_id: UUID,
        grade: Any,
        section: int | None = None,
        subject: str | None = None,
        days: Any = None,
        start_time: Any = None,
        end_time: Any = None,
        actor_id: UUID | None = None,
    ) -> Binding:
        """
        Create or replace an instructor's primary binding.

        Grades 1-3 ignore section, subject and schedule.

        Raises:
            ValidationError: Malformed grade, section, subject or schedule
            NotFoundError: If the instructor does not exist
            ConflictError: Grade, slot or subject already owned
            CapacityError: Section already has 6 instructors
        """
        request = self._request(
            instructor_id, grade, section, subject, days, start_time, end_time, is_primary=True
        )

        async with self.locks.hold(*self._keys(request)):
            async with self.store.transaction() as tx:
                instructor = await self._instructor(tx, instructor_id)
                own = await tx.registry.bindings_for_instructor(instructor_id)
                peers = await self._peers(tx, request)

                request = self.validator.validate(request, own, peers)
                binding = await tx.registry.save_primary(instructor, request)

        await self._publish([self._bound_event(binding, actor_id)])
        return binding

    async def add_section_assignment(
        self,
        instructor_id: UUID,
        grade: Any,
        section: int | None,
        subject: str | None,
        days: Any = None,
        start_time: Any = None,
        end_time: Any = None,
        actor_id: UUID | None = None,
    ) -> Binding:
        """
        Add a secondary section assignment (grades 4-6 only).

        Raises:
            ValidationError: Primary tier grade, missing fields or malformed schedule
            NotFoundError: If the instructor does not exist
            ConflictError: Slot or subject already owned, or the instructor already
                teaches in this section
            CapacityError: Section already has 6 instructors
            ScheduleConflictError: Overlap with another class of the section
        """
        request = self._request(
            instructor_id, grade, section, subject, days, start_time, end_time, is_primary=False
        )
        self.validator.ensure_tier_allows(request)

        async with self.locks.hold(*self._keys(request)):
            async with self.store.transaction() as tx:
                instructor = await self._instructor(tx, instructor_id)
                own = await tx.registry.bindings_for_instructor(instructor_id)
                peers = await self._peers(tx, request)

                request = self.validator.validate(request, own, peers)
                binding = await tx.registry.add_secondary(instructor, request)

        await self._publish([self._bound_event(binding, actor_id)])
        return binding

    async def remove_section_assignment(
        self, instructor_id: UUID, assignment_id: UUID, actor_id: UUID | None = None
    ) -> None:
        """
        Remove one of the instructor's secondary assignments.

        Raises:
            NotFoundError: If no such secondary assignment belongs to the instructor
        """
        async with self.locks.hold(instructor_key(instructor_id)):
            async with self.store.transaction() as tx:
                binding = await tx.registry.get_assignment(assignment_id)
                if binding is None or binding.instructor_id != instructor_id or binding.is_primary:
                    raise NotFoundError("Section assignment", str(assignment_id))
                await tx.registry.remove_assignment(assignment_id)

        await self._publish(
            [
                SectionAssignmentRemovedEvent(
                    metadata=EventMetadata(user_id=actor_id),
                    aggregate_id=instructor_id,
                    assignment_id=assignment_id,
                    grade_level=str(binding.grade),
                    section=binding.section,
                )
            ]
        )

    async def list_bindings(self, instructor_id: UUID) -> list[Binding]:
        """Merged bindings of an instructor, primary first."""
        async with self.store.transaction() as tx:
            await self._instructor(tx, instructor_id)
            return await tx.registry.bindings_for_instructor(instructor_id)

    async def instructors_for_section(self, grade: Any, section: int | None = None) -> dict[str, list[Binding]]:
        """
        Candidate instructors per subject for approving a student into a section.

        Grades 1-3 return the grade adviser under "All Subjects".
        """
        grade = GradeLevel.parse(grade)

        async with self.store.transaction() as tx:
            if grade.is_primary:
                bindings = await tx.registry.bindings_for_grade(grade)
                return {ALL_SUBJECTS: [b for b in bindings if b.is_primary]}

            section = validate_section(section)
            bindings = await tx.registry.bindings_for_section(grade, section)

        candidates: dict[str, list[Binding]] = defaultdict(list)
        for binding in bindings:
            if binding.subject:
                candidates[binding.subject].append(binding)
        return {subject: candidates.get(subject, []) for subject in grade.required_subjects}

    async def taken_sections(self, grade: Any) -> dict[int, str]:
        """Sections of a grade already held by a primary binding, with the instructor name."""
        grade = GradeLevel.parse(grade)
        async with self.store.transaction() as tx:
            bindings = await tx.registry.bindings_for_grade(grade)
        return {
            b.section: b.instructor_name
            for b in bindings
            if b.is_primary and b.section is not None
        }

    async def class_schedules(self, grade: Any = None) -> list[GradeSchedule]:
        """
        Shift, class hours and instructors of one grade, or of every grade when none is given.

        Display only; no locks are taken.
        """
        if grade is None:
            grades = [GradeLevel(value) for value in range(MIN_GRADE, MAX_GRADE + 1)]
        else:
            grades = [GradeLevel.parse(grade)]

        async with self.store.transaction() as tx:
            return [grade_schedule(g, await tx.registry.bindings_for_grade(g)) for g in grades]

    async def delete_instructor(self, instructor_id: UUID, actor_id: UUID | None = None) -> int:
        """
        Delete an instructor account and all of its bindings.

        Returns:
            int: Number of bindings removed
        """
        async with self.locks.hold(instructor_key(instructor_id)):
            async with self.store.transaction() as tx:
                instructor = await self._instructor(tx, instructor_id)
                full_name = instructor.full_name
                removed = await tx.registry.delete_instructor(instructor)

        await self._publish(
            [
                InstructorDeletedEvent(
                    metadata=EventMetadata(user_id=actor_id),
                    aggregate_id=instructor_id,
                    full_name=full_name,
                    removed_assignments=removed,
                )
            ]
        )
        return removed

    @staticmethod
    def _request(
        instructor_id: UUID,
        grade: Any,
        section: int | None,
        subject: str | None,
        days: Any,
        start_time: Any,
        end_time: Any,
        is_primary: bool,
    ) -> BindingRequest:
        grade = GradeLevel.parse(grade)
        if grade.is_primary:
            return BindingRequest(instructor_id=instructor_id, grade=grade, is_primary=is_primary)

        # Malformed input fails before any lock is taken.
        section = validate_section(section)
        return BindingRequest(
            instructor_id=instructor_id,
            grade=grade,
            section=section,
            subject=subject,
            schedule=Schedule.from_fields(days, start_time, end_time),
            is_primary=is_primary,
        )

    @staticmethod
    def _keys(request: BindingRequest) -> list[str]:
        keys = [instructor_key(request.instructor_id)]
        if request.grade.is_primary:
            keys.append(grade_key(request.grade))
        else:
            keys.append(section_staff_key(request.grade, request.section))
        return keys

    @staticmethod
    async def _instructor(tx: Any, instructor_id: UUID) -> Any:
        instructor = await tx.registry.get_instructor(instructor_id, for_update=True)
        if instructor is None:
            raise NotFoundError("Instructor", str(instructor_id))
        return instructor

    @staticmethod
    async def _peers(tx: Any, request: BindingRequest) -> list[Binding]:
        if request.grade.is_primary:
            return await tx.registry.bindings_for_grade(request.grade)
        return await tx.registry.bindings_for_section(request.grade, request.section)

    @staticmethod
    def _bound_event(binding: Binding, actor_id: UUID | None) -> InstructorBoundEvent:
        return InstructorBoundEvent(
            metadata=EventMetadata(user_id=actor_id),
            aggregate_id=binding.instructor_id,
            grade_level=str(binding.grade),
            section=binding.section,
            subject=binding.subject,
            room=binding.room,
            is_primary=binding.is_primary,
            assignment_id=binding.assignment_id,
        )

    async def _publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.info("Domain event", **event.log_context())
        if self.dispatcher is not None:
            await self.dispatcher.dispatch(events)
