"""
Enrollment Service

Orchestrates enrollment transitions: loads the record under its locks, asks
the state machine for the transition, persists the outcome in the same
transaction and publishes the resulting events only after commit.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog

from services.enrollment_service.notifications import NotificationDispatcher
from services.enrollment_service.store import Store
from shared.concurrency.locking import KeyedLockManager, enrollment_key, section_roster_key
from shared.domain.capacity import CapacityManager, SectionAvailability
from shared.domain.enrollment import EnrollmentStateMachine, EnrollmentStatus, TransitionResult
from shared.domain.exceptions import NotFoundError, ValidationError
from shared.domain.grades import SECTION_NUMBERS, TOTAL_SECTIONS, GradeLevel, validate_section

logger = structlog.get_logger(__name__)


class EnrollmentService:
    """Enrollment approval, rejection and section placement."""

    def __init__(
        self,
        store: Store,
        locks: KeyedLockManager,
        state_machine: EnrollmentStateMachine | None = None,
        capacity: CapacityManager | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.store = store
        self.locks = locks
        self.capacity = capacity or CapacityManager()
        self.state_machine = state_machine or EnrollmentStateMachine(self.capacity)
        self.dispatcher = dispatcher

    async def approve(
        self,
        enrollment_id: UUID,
        section: int,
        bindings: Mapping[str, UUID | None],
        actor_id: UUID | None = None,
    ) -> Any:
        """
        Approve a pending enrollment into a section.

        Args:
            enrollment_id: Enrollment to approve
            section: Destination section (1-8)
            bindings: Subject -> chosen instructor id
            actor_id: Admin performing the approval

        Returns:
            The approved enrollment record

        Raises:
            NotFoundError: Unknown enrollment or instructor
            InvalidStateError: If the enrollment is not pending
            ValidationError: Invalid section or missing subject binding
            CapacityError: If the section already holds 40 students
        """
        grade = await self._grade_of(enrollment_id)

        async with self.locks.hold(*self._placement_keys(enrollment_id, grade, section)):
            async with self.store.transaction() as tx:
                enrollment = await self._load(tx, enrollment_id)
                occupancy = 0
                if section in SECTION_NUMBERS:
                    occupancy = await tx.enrollments.count_approved(grade, section)
                chosen = {subject: iid for subject, iid in bindings.items() if iid is not None}
                names = await tx.registry.instructor_names(chosen.values())

                result = self.state_machine.approve(
                    enrollment, section, chosen, occupancy, names, actor_id=actor_id
                )
                await tx.enrollments.add_subject_enrollments(result.subject_enrollments)

        await self._publish(result)
        return result.enrollment

    async def reject(
        self, enrollment_id: UUID, require_pending: bool = False, actor_id: UUID | None = None
    ) -> Any:
        """
        Reject an enrollment and clear its section.

        Raises:
            NotFoundError: If the enrollment does not exist
            InvalidStateError: If require_pending is set and the record is not pending
        """
        async with self.locks.hold(enrollment_key(enrollment_id)):
            async with self.store.transaction() as tx:
                enrollment = await self._load(tx, enrollment_id)
                result = self.state_machine.reject(
                    enrollment, require_pending=require_pending, actor_id=actor_id
                )

        await self._publish(result)
        return result.enrollment

    async def remove_from_section(self, enrollment_id: UUID, actor_id: UUID | None = None) -> Any:
        """
        Take an approved student out of their section (back to pending).

        Raises:
            NotFoundError: If the enrollment does not exist
            InvalidStateError: If the enrollment is not approved
        """
        async with self.locks.hold(enrollment_key(enrollment_id)):
            async with self.store.transaction() as tx:
                enrollment = await self._load(tx, enrollment_id)
                result = self.state_machine.remove_from_section(enrollment, actor_id=actor_id)

        await self._publish(result)
        return result.enrollment

    async def reassign(
        self, enrollment_id: UUID, new_section: int, actor_id: UUID | None = None
    ) -> Any:
        """
        Place a student into a section, counting capacity without the student itself.

        Raises:
            NotFoundError: If the enrollment does not exist
            InvalidStateError: If the enrollment was rejected, or is pending and was never approved
            ValidationError: If the section is out of range
            CapacityError: If the destination already holds 40 other students
        """
        grade = await self._grade_of(enrollment_id)

        async with self.locks.hold(*self._placement_keys(enrollment_id, grade, new_section)):
            async with self.store.transaction() as tx:
                enrollment = await self._load(tx, enrollment_id)
                occupancy = 0
                if new_section in SECTION_NUMBERS:
                    occupancy = await tx.enrollments.count_approved(
                        grade, new_section, exclude_id=enrollment_id
                    )
                has_history = False
                if enrollment.status == EnrollmentStatus.PENDING.value:
                    has_history = await tx.enrollments.has_subject_enrollments(enrollment_id)
                result = self.state_machine.reassign(
                    enrollment, new_section, occupancy, has_history=has_history, actor_id=actor_id
                )

        await self._publish(result)
        return result.enrollment

    async def list_enrollments(self, status: Any = None) -> list[Any]:
        """Enrollments newest first, optionally only those with the given status ("all" for every status)."""
        wanted = None
        if status is not None and status != "all":
            try:
                wanted = EnrollmentStatus(status)
            except ValueError as e:
                raise ValidationError("invalid enrollment status", field="status", value=status, cause=e)
        async with self.store.transaction() as tx:
            return await tx.enrollments.list_enrollments(wanted)

    async def available_sections(self, grade: Any) -> SectionAvailability:
        """Sections of a grade with fewer than 40 approved students."""
        grade = GradeLevel.parse(grade)
        async with self.store.transaction() as tx:
            occupancy = await tx.enrollments.occupancy(grade)
        return self.capacity.available_sections(grade, occupancy)

    async def section_roster(self, grade: Any, section: int) -> list[Any]:
        """Approved students of a section ordered by name."""
        grade = GradeLevel.parse(grade)
        section = validate_section(section)
        async with self.store.transaction() as tx:
            return await tx.enrollments.roster(grade, section)

    async def subject_enrollments(self, enrollment_id: UUID) -> list[Any]:
        async with self.store.transaction() as tx:
            await self._load(tx, enrollment_id)
            return await tx.enrollments.subject_enrollments(enrollment_id)

    async def dashboard(self) -> dict[str, Any]:
        """Admin overview counts (display only, not linearizable with writes)."""
        async with self.store.transaction() as tx:
            counts = await tx.enrollments.status_counts()
            per_grade = await tx.enrollments.approved_per_grade()
            instructors = await tx.registry.count_instructors()

        return {
            "approved": counts.get(EnrollmentStatus.APPROVED.value, 0),
            "pending": counts.get(EnrollmentStatus.PENDING.value, 0),
            "rejected": counts.get(EnrollmentStatus.REJECTED.value, 0),
            "instructors": instructors,
            "total_sections": TOTAL_SECTIONS,
            "approved_per_grade": per_grade,
        }

    async def _grade_of(self, enrollment_id: UUID) -> GradeLevel:
        # The grade never changes, so it can be read before the locks are taken.
        async with self.store.transaction() as tx:
            enrollment = await self._load(tx, enrollment_id, for_update=False)
            return GradeLevel.parse(enrollment.grade_level)

    @staticmethod
    def _placement_keys(enrollment_id: UUID, grade: GradeLevel, section: Any) -> list[str]:
        keys = [enrollment_key(enrollment_id)]
        if section in SECTION_NUMBERS:
            keys.append(section_roster_key(grade, section))
        return keys

    @staticmethod
    async def _load(tx: Any, enrollment_id: UUID, for_update: bool = True) -> Any:
        enrollment = await tx.enrollments.get(enrollment_id, for_update=for_update)
        if enrollment is None:
            raise NotFoundError("Enrollment", str(enrollment_id))
        return enrollment

    async def _publish(self, result: TransitionResult) -> None:
        for event in result.events:
            logger.info("Domain event", **event.log_context())
        if self.dispatcher is not None:
            await self.dispatcher.dispatch(result.events)
