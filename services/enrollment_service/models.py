"""
Enrollment Service Database Models

SQLAlchemy models for instructor profiles, instructor bindings, student
enrollments and per-subject enrollment records.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


class InstructorModel(Base):
    """
    Instructor profile (the subset of the account record this service owns).

    The assigned_* fields mirror the instructor's primary binding.
    """

    __tablename__ = "instructors"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="instructor", nullable=False, index=True)

    assigned_grade_level: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    assigned_section: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assigned_subject: Mapped[str | None] = mapped_column(String(50), nullable=True)
    assigned_room: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SectionAssignmentModel(Base):
    """
    Instructor binding to a (grade, section, subject) slot.

    One row per instructor is flagged is_primary; the rest are secondary
    section assignments. Schedule columns are either all set or all null.
    """

    __tablename__ = "section_assignments"
    __table_args__ = (
        Index("ix_section_assignments_slot", "grade_level", "section", "subject"),
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    instructor_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("instructors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grade_level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    section: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(50), nullable=True)
    assigned_room: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Schedule
    days: Mapped[list | None] = mapped_column(JSON, nullable=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)  # HH:MM
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)  # HH:MM

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class EnrollmentModel(Base):
    """Student enrollment application and its section placement."""

    __tablename__ = "enrollments"
    __table_args__ = (Index("ix_enrollments_roster", "grade_level", "section", "status"),)

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    account_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)

    student_name: Mapped[str] = mapped_column(String(200), nullable=False)
    grade_level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    section: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)

    # Parent / contact
    parent_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SubjectEnrollmentModel(Base):
    """Per-subject instructor of an approved enrollment (history, never deleted on removal)."""

    __tablename__ = "subject_enrollments"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    enrollment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("enrollments.id"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    instructor_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("instructors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
