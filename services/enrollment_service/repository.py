"""
Enrollment Repository

Database access for enrollment records, section occupancy and subject
enrollment history.
"""

from uuid import UUID

import structlog
from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.enrollment_service.models import EnrollmentModel, SubjectEnrollmentModel
from shared.domain.enrollment import EnrollmentStatus, SubjectEnrollment
from shared.domain.grades import GradeLevel

logger = structlog.get_logger(__name__)


class EnrollmentRepository:
    """Repository for enrollment data access."""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: Database session (the caller owns the transaction)
        """
        self.session = session

    async def get(self, enrollment_id: UUID, for_update: bool = False) -> EnrollmentModel | None:
        """Get an enrollment by ID."""
        query = select(EnrollmentModel).where(EnrollmentModel.id == enrollment_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_enrollments(self, status: EnrollmentStatus | None = None) -> list[EnrollmentModel]:
        """Enrollments, optionally filtered by status, newest first."""
        query = select(EnrollmentModel).order_by(EnrollmentModel.enrolled_at.desc())
        if status is not None:
            query = query.where(EnrollmentModel.status == status.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_approved(
        self, grade: GradeLevel, section: int, exclude_id: UUID | None = None
    ) -> int:
        """Count approved enrollments in one (grade, section)."""
        query = select(func.count()).select_from(EnrollmentModel).where(
            EnrollmentModel.grade_level == str(grade),
            EnrollmentModel.section == section,
            EnrollmentModel.status == EnrollmentStatus.APPROVED.value,
        )
        if exclude_id is not None:
            query = query.where(EnrollmentModel.id != exclude_id)
        result = await self.session.execute(query)
        return int(result.scalar_one())

    async def occupancy(self, grade: GradeLevel) -> dict[int, int]:
        """Approved enrollments per section of a grade."""
        result = await self.session.execute(
            select(EnrollmentModel.section, func.count())
            .where(
                EnrollmentModel.grade_level == str(grade),
                EnrollmentModel.status == EnrollmentStatus.APPROVED.value,
                EnrollmentModel.section.is_not(None),
            )
            .group_by(EnrollmentModel.section)
        )
        return {int(section): int(count) for section, count in result.all()}

    async def roster(self, grade: GradeLevel, section: int) -> list[EnrollmentModel]:
        """Approved students of one section ordered by name."""
        result = await self.session.execute(
            select(EnrollmentModel)
            .where(
                EnrollmentModel.grade_level == str(grade),
                EnrollmentModel.section == section,
                EnrollmentModel.status == EnrollmentStatus.APPROVED.value,
            )
            .order_by(EnrollmentModel.student_name)
        )
        return list(result.scalars().all())

    async def status_counts(self) -> dict[str, int]:
        result = await self.session.execute(
            select(EnrollmentModel.status, func.count()).group_by(EnrollmentModel.status)
        )
        return {status: int(count) for status, count in result.all()}

    async def approved_per_grade(self) -> dict[str, int]:
        result = await self.session.execute(
            select(EnrollmentModel.grade_level, func.count())
            .where(EnrollmentModel.status == EnrollmentStatus.APPROVED.value)
            .group_by(EnrollmentModel.grade_level)
            .order_by(EnrollmentModel.grade_level)
        )
        return {grade: int(count) for grade, count in result.all()}

    async def add_subject_enrollments(self, records: list[SubjectEnrollment]) -> None:
        """Persist the subject enrollments created by an approval."""
        self.session.add_all(
            [
                SubjectEnrollmentModel(
                    enrollment_id=record.enrollment_id,
                    subject=record.subject,
                    instructor_id=record.instructor_id,
                    enrolled_at=record.enrolled_at,
                )
                for record in records
            ]
        )
        await self.session.flush()
        logger.debug("Subject enrollments stored", count=len(records))

    async def subject_enrollments(self, enrollment_id: UUID) -> list[SubjectEnrollmentModel]:
        result = await self.session.execute(
            select(SubjectEnrollmentModel)
            .where(SubjectEnrollmentModel.enrollment_id == enrollment_id)
            .order_by(SubjectEnrollmentModel.subject)
        )
        return list(result.scalars().all())

    async def has_subject_enrollments(self, enrollment_id: UUID) -> bool:
        """Whether the enrollment was ever approved with its instructors."""
        result = await self.session.execute(
            select(exists().where(SubjectEnrollmentModel.enrollment_id == enrollment_id))
        )
        return bool(result.scalar())
