"""
Section Assignment Registry

Source of truth for instructor bindings. Primary bindings and secondary
section assignments live in one table and are always read together, so
every validator sees the merged view.
"""

from collections.abc import Iterable
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.enrollment_service.models import InstructorModel, SectionAssignmentModel
from shared.domain.assignments import BindingRequest
from shared.domain.bindings import Binding, sort_bindings
from shared.domain.grades import GradeLevel
from shared.domain.schedule import Schedule

logger = structlog.get_logger(__name__)

INSTRUCTOR_ROLE = "instructor"


class SectionAssignmentRegistry:
    """Repository for instructor profiles and their bindings."""

    def __init__(self, session: AsyncSession):
        """
        Initialize registry.

        Args:
            session: Database session (the caller owns the transaction)
        """
        self.session = session

    async def get_instructor(
        self, instructor_id: UUID, for_update: bool = False
    ) -> InstructorModel | None:
        """Get an instructor profile by ID (non-instructor accounts are not returned)."""
        query = select(InstructorModel).where(
            InstructorModel.id == instructor_id,
            InstructorModel.role == INSTRUCTOR_ROLE,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def instructor_names(self, instructor_ids: Iterable[UUID]) -> dict[UUID, str]:
        """Map existing instructor IDs to their names."""
        ids = set(instructor_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(InstructorModel.id, InstructorModel.full_name).where(
                InstructorModel.id.in_(ids),
                InstructorModel.role == INSTRUCTOR_ROLE,
            )
        )
        return {instructor_id: name for instructor_id, name in result.all()}

    async def count_instructors(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(InstructorModel).where(
                InstructorModel.role == INSTRUCTOR_ROLE
            )
        )
        return int(result.scalar_one())

    async def bindings_for_instructor(self, instructor_id: UUID) -> list[Binding]:
        """Merged bindings of one instructor, primary first."""
        return sort_bindings(
            await self._bindings(SectionAssignmentModel.instructor_id == instructor_id)
        )

    async def bindings_for_grade(self, grade: GradeLevel) -> list[Binding]:
        """Bindings of every instructor in a grade."""
        return sort_bindings(await self._bindings(SectionAssignmentModel.grade_level == str(grade)))

    async def bindings_for_section(self, grade: GradeLevel, section: int) -> list[Binding]:
        """Bindings of every instructor in one (grade, section)."""
        return sort_bindings(
            await self._bindings(
                SectionAssignmentModel.grade_level == str(grade),
                SectionAssignmentModel.section == section,
            )
        )

    async def get_assignment(self, assignment_id: UUID) -> Binding | None:
        bindings = await self._bindings(SectionAssignmentModel.id == assignment_id)
        return bindings[0] if bindings else None

    async def save_primary(self, instructor: InstructorModel, request: BindingRequest) -> Binding:
        """
        Create or replace the instructor's primary binding and mirror it on the profile.

        Args:
            instructor: Instructor profile (loaded in this session)
            request: Validated binding request
        """
        result = await self.session.execute(
            select(SectionAssignmentModel).where(
                SectionAssignmentModel.instructor_id == instructor.id,
                SectionAssignmentModel.is_primary.is_(True),
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = SectionAssignmentModel(instructor_id=instructor.id, is_primary=True)
            self.session.add(row)

        self._apply(row, request)

        instructor.assigned_grade_level = str(request.grade)
        instructor.assigned_section = request.section
        instructor.assigned_subject = request.subject
        instructor.assigned_room = request.room

        await self.session.flush()

        logger.info(
            "Primary binding saved",
            instructor_id=str(instructor.id),
            grade=request.grade.value,
            section=request.section,
            subject=request.subject,
        )
        return self._to_binding(row, instructor.full_name)

    async def add_secondary(self, instructor: InstructorModel, request: BindingRequest) -> Binding:
        """Insert a secondary section assignment."""
        row = SectionAssignmentModel(instructor_id=instructor.id, is_primary=False)
        self._apply(row, request)
        self.session.add(row)
        await self.session.flush()

        logger.info(
            "Section assignment added",
            instructor_id=str(instructor.id),
            assignment_id=str(row.id),
            grade=request.grade.value,
            section=request.section,
            subject=request.subject,
        )
        return self._to_binding(row, instructor.full_name)

    async def remove_assignment(self, assignment_id: UUID) -> None:
        await self.session.execute(
            delete(SectionAssignmentModel).where(SectionAssignmentModel.id == assignment_id)
        )
        logger.info("Section assignment removed", assignment_id=str(assignment_id))

    async def delete_instructor(self, instructor: InstructorModel) -> int:
        """
        Delete an instructor profile and cascade its bindings.

        Returns:
            int: Number of bindings removed
        """
        result = await self.session.execute(
            delete(SectionAssignmentModel).where(
                SectionAssignmentModel.instructor_id == instructor.id
            )
        )
        await self.session.delete(instructor)
        await self.session.flush()

        removed = result.rowcount or 0
        logger.info("Instructor deleted", instructor_id=str(instructor.id), removed_bindings=removed)
        return removed

    async def _bindings(self, *criteria) -> list[Binding]:
        result = await self.session.execute(
            select(SectionAssignmentModel, InstructorModel.full_name)
            .join(InstructorModel, InstructorModel.id == SectionAssignmentModel.instructor_id)
            .where(*criteria)
        )
        return [self._to_binding(row, name) for row, name in result.all()]

    @staticmethod
    def _apply(row: SectionAssignmentModel, request: BindingRequest) -> None:
        row.grade_level = str(request.grade)
        row.section = request.section
        row.subject = request.subject
        row.assigned_room = request.room
        if request.schedule is not None:
            row.days = sorted(request.schedule.days)
            row.start_time = f"{request.schedule.start:%H:%M}"
            row.end_time = f"{request.schedule.end:%H:%M}"
        else:
            row.days = None
            row.start_time = None
            row.end_time = None

    @staticmethod
    def _to_binding(row: SectionAssignmentModel, instructor_name: str) -> Binding:
        return Binding(
            instructor_id=row.instructor_id,
            instructor_name=instructor_name,
            grade=GradeLevel.parse(row.grade_level),
            section=row.section,
            subject=row.subject,
            is_primary=row.is_primary,
            room=row.assigned_room,
            schedule=Schedule.from_fields(row.days, row.start_time, row.end_time),
            assignment_id=row.id,
        )
