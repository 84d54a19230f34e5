"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (pure domain, no store)
- Service tests (orchestration against an in-memory store double)
"""

import asyncio
import copy
from collections import Counter
from collections.abc import Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from services.enrollment_service.assignment_service import AssignmentService
from services.enrollment_service.enrollment_service import EnrollmentService
from services.enrollment_service.notifications import NotificationDispatcher, Notifier
from services.enrollment_service.store import StoreTransaction
from shared.concurrency.locking import KeyedLockManager
from shared.config import Settings
from shared.domain.assignments import BindingRequest
from shared.domain.bindings import Binding, sort_bindings
from shared.domain.enrollment import EnrollmentStatus, SubjectEnrollment
from shared.domain.grades import GradeLevel, room_for_section
from shared.domain.schedule import Schedule


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (pure domain logic)"
    )
    config.addinivalue_line(
        "markers", "service: mark test as a service test (in-memory store)"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent admissions"
    )


# =============================================================================
# In-memory store double
# =============================================================================


@dataclass
class FakeInstructor:
    """Instructor profile record."""

    id: UUID
    full_name: str
    email: str
    role: str = "instructor"
    assigned_grade_level: str | None = None
    assigned_section: int | None = None
    assigned_subject: str | None = None
    assigned_room: str | None = None


@dataclass
class FakeEnrollment:
    """Enrollment record."""

    id: UUID
    student_name: str
    grade_level: str
    section: int | None = None
    status: str = EnrollmentStatus.PENDING.value
    parent_name: str | None = None
    contact_email: str | None = None
    enrolled_at: datetime = field(default_factory=datetime.utcnow)


class _Transaction:
    """Undo log for one unit of work."""

    def __init__(self):
        self.undo: list[Callable[[], None]] = []
        self._seen: set[tuple[int, Any]] = set()

    def remember(self, table: dict, key: Any) -> None:
        """Record how to restore table[key] if the transaction rolls back."""
        marker = (id(table), key)
        if marker in self._seen:
            return
        self._seen.add(marker)
        if key in table:
            original = copy.deepcopy(table[key])
            self.undo.append(lambda: table.__setitem__(key, original))
        else:
            self.undo.append(lambda: table.pop(key, None))

    def rollback(self) -> None:
        for action in reversed(self.undo):
            action()


class InMemoryRegistry:
    """Binding registry with the same surface as SectionAssignmentRegistry."""

    def __init__(self, store: "InMemoryStore", tx: _Transaction):
        self.store = store
        self.tx = tx

    async def get_instructor(self, instructor_id: UUID, for_update: bool = False):
        instructor = self.store.instructors.get(instructor_id)
        if instructor is None or instructor.role != "instructor":
            return None
        if for_update:
            self.tx.remember(self.store.instructors, instructor_id)
        return instructor

    async def instructor_names(self, instructor_ids: Iterable[UUID]) -> dict[UUID, str]:
        return {
            iid: self.store.instructors[iid].full_name
            for iid in set(instructor_ids)
            if iid in self.store.instructors
            and self.store.instructors[iid].role == "instructor"
        }

    async def count_instructors(self) -> int:
        return sum(1 for i in self.store.instructors.values() if i.role == "instructor")

    async def bindings_for_instructor(self, instructor_id: UUID) -> list[Binding]:
        return sort_bindings(
            b for b in self.store.assignments.values() if b.instructor_id == instructor_id
        )

    async def bindings_for_grade(self, grade: GradeLevel) -> list[Binding]:
        return sort_bindings(b for b in self.store.assignments.values() if b.grade == grade)

    async def bindings_for_section(self, grade: GradeLevel, section: int) -> list[Binding]:
        # Yield so concurrent writers interleave between their check and their write.
        await asyncio.sleep(0)
        return sort_bindings(
            b for b in self.store.assignments.values() if b.in_section(grade, section)
        )

    async def get_assignment(self, assignment_id: UUID) -> Binding | None:
        return self.store.assignments.get(assignment_id)

    async def save_primary(self, instructor: FakeInstructor, request: BindingRequest) -> Binding:
        existing = next(
            (
                b
                for b in self.store.assignments.values()
                if b.instructor_id == instructor.id and b.is_primary
            ),
            None,
        )
        assignment_id = existing.assignment_id if existing else uuid4()
        binding = self._binding(instructor, request, assignment_id)
        self.tx.remember(self.store.assignments, assignment_id)
        self.store.assignments[assignment_id] = binding

        instructor.assigned_grade_level = str(request.grade)
        instructor.assigned_section = request.section
        instructor.assigned_subject = request.subject
        instructor.assigned_room = request.room
        return binding

    async def add_secondary(self, instructor: FakeInstructor, request: BindingRequest) -> Binding:
        assignment_id = uuid4()
        binding = self._binding(instructor, request, assignment_id)
        self.tx.remember(self.store.assignments, assignment_id)
        self.store.assignments[assignment_id] = binding
        return binding

    async def remove_assignment(self, assignment_id: UUID) -> None:
        self.tx.remember(self.store.assignments, assignment_id)
        self.store.assignments.pop(assignment_id, None)

    async def delete_instructor(self, instructor: FakeInstructor) -> int:
        owned = [
            aid for aid, b in self.store.assignments.items() if b.instructor_id == instructor.id
        ]
        for aid in owned:
            self.tx.remember(self.store.assignments, aid)
            del self.store.assignments[aid]
        self.tx.remember(self.store.instructors, instructor.id)
        del self.store.instructors[instructor.id]
        return len(owned)

    @staticmethod
    def _binding(instructor: FakeInstructor, request: BindingRequest, assignment_id: UUID) -> Binding:
        return Binding(
            instructor_id=instructor.id,
            instructor_name=instructor.full_name,
            grade=request.grade,
            section=request.section,
            subject=request.subject,
            is_primary=request.is_primary,
            room=request.room,
            schedule=request.schedule,
            assignment_id=assignment_id,
        )


class InMemoryEnrollments:
    """Enrollment repository with the same surface as EnrollmentRepository."""

    def __init__(self, store: "InMemoryStore", tx: _Transaction):
        self.store = store
        self.tx = tx

    async def get(self, enrollment_id: UUID, for_update: bool = False) -> FakeEnrollment | None:
        enrollment = self.store.enrollments.get(enrollment_id)
        if enrollment is not None and for_update:
            self.tx.remember(self.store.enrollments, enrollment_id)
        return enrollment

    async def list_enrollments(self, status: EnrollmentStatus | None = None) -> list[FakeEnrollment]:
        return sorted(
            (
                e
                for e in self.store.enrollments.values()
                if status is None or e.status == status.value
            ),
            key=lambda e: e.enrolled_at,
            reverse=True,
        )

    async def count_approved(
        self, grade: GradeLevel, section: int, exclude_id: UUID | None = None
    ) -> int:
        # Yield so concurrent admissions interleave between their check and their write.
        await asyncio.sleep(0)
        return sum(
            1
            for e in self.store.enrollments.values()
            if e.grade_level == str(grade)
            and e.section == section
            and e.status == EnrollmentStatus.APPROVED.value
            and e.id != exclude_id
        )

    async def occupancy(self, grade: GradeLevel) -> dict[int, int]:
        return dict(
            Counter(
                e.section
                for e in self.store.enrollments.values()
                if e.grade_level == str(grade)
                and e.status == EnrollmentStatus.APPROVED.value
                and e.section is not None
            )
        )

    async def roster(self, grade: GradeLevel, section: int) -> list[FakeEnrollment]:
        return sorted(
            (
                e
                for e in self.store.enrollments.values()
                if e.grade_level == str(grade)
                and e.section == section
                and e.status == EnrollmentStatus.APPROVED.value
            ),
            key=lambda e: e.student_name,
        )

    async def status_counts(self) -> dict[str, int]:
        return dict(Counter(e.status for e in self.store.enrollments.values()))

    async def approved_per_grade(self) -> dict[str, int]:
        counts = Counter(
            e.grade_level
            for e in self.store.enrollments.values()
            if e.status == EnrollmentStatus.APPROVED.value
        )
        return dict(sorted(counts.items()))

    async def add_subject_enrollments(self, records: list[SubjectEnrollment]) -> None:
        start = len(self.store.subject_enrollments)
        self.store.subject_enrollments.extend(records)
        self.tx.undo.append(lambda: self.store.subject_enrollments.__delitem__(slice(start, None)))

    async def subject_enrollments(self, enrollment_id: UUID) -> list[SubjectEnrollment]:
        return sorted(
            (r for r in self.store.subject_enrollments if r.enrollment_id == enrollment_id),
            key=lambda r: r.subject,
        )

    async def has_subject_enrollments(self, enrollment_id: UUID) -> bool:
        return any(r.enrollment_id == enrollment_id for r in self.store.subject_enrollments)


class InMemoryStore:
    """Store double: commits on clean exit, undoes its own writes on error."""

    def __init__(self):
        self.instructors: dict[UUID, FakeInstructor] = {}
        self.assignments: dict[UUID, Binding] = {}
        self.enrollments: dict[UUID, FakeEnrollment] = {}
        self.subject_enrollments: list[SubjectEnrollment] = []
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def transaction(self):
        tx = _Transaction()
        try:
            yield StoreTransaction(
                registry=InMemoryRegistry(self, tx),
                enrollments=InMemoryEnrollments(self, tx),
            )
        except BaseException:
            tx.rollback()
            self.rollbacks += 1
            raise
        self.commits += 1

    # Seeding helpers

    def add_instructor(self, full_name: str, role: str = "instructor") -> FakeInstructor:
        instructor = FakeInstructor(
            id=uuid4(),
            full_name=full_name,
            email=f"{full_name.lower().replace(' ', '.')}@school.test",
            role=role,
        )
        self.instructors[instructor.id] = instructor
        return instructor

    def bind(
        self,
        instructor: FakeInstructor,
        grade: str,
        section: int | None = None,
        subject: str | None = None,
        is_primary: bool = True,
        schedule: Schedule | None = None,
    ) -> Binding:
        """Insert a binding directly, bypassing validation."""
        level = GradeLevel.parse(grade)
        binding = Binding(
            instructor_id=instructor.id,
            instructor_name=instructor.full_name,
            grade=level,
            section=section,
            subject=subject,
            is_primary=is_primary,
            room=room_for_section(level, section) if section else None,
            schedule=schedule,
            assignment_id=uuid4(),
        )
        self.assignments[binding.assignment_id] = binding
        return binding

    def add_enrollment(
        self,
        student_name: str,
        grade: str,
        section: int | None = None,
        status: EnrollmentStatus = EnrollmentStatus.PENDING,
        contact_email: str | None = "parent@example.com",
        enrolled_at: datetime | None = None,
    ) -> FakeEnrollment:
        """Insert an enrollment directly; approved ones get their subject enrollment history."""
        enrollment = FakeEnrollment(
            id=uuid4(),
            student_name=student_name,
            grade_level=grade,
            section=section,
            status=status.value,
            parent_name="Parent of " + student_name,
            contact_email=contact_email,
            enrolled_at=enrolled_at or datetime.utcnow(),
        )
        self.enrollments[enrollment.id] = enrollment
        if status is EnrollmentStatus.APPROVED:
            self.subject_enrollments.extend(
                SubjectEnrollment(
                    enrollment_id=enrollment.id,
                    subject=subject,
                    instructor_id=uuid4(),
                    enrolled_at=enrollment.enrolled_at,
                )
                for subject in GradeLevel.parse(grade).required_subjects
            )
        return enrollment

    def fill_section(self, grade: str, section: int, count: int) -> list[FakeEnrollment]:
        return [
            self.add_enrollment(f"Student {grade}-{section}-{n:02d}", grade, section, EnrollmentStatus.APPROVED)
            for n in range(count)
        ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests (no notification service, console logs)."""
    return Settings(
        environment="test",
        debug=False,
        secret_key="test-secret-key-for-testing-only-32chars",
        notification_service_url="",
        school_name="Elementary School",
        log_format="text",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def locks() -> KeyedLockManager:
    return KeyedLockManager()


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier mock that records every send."""
    return AsyncMock(spec=Notifier)


@pytest.fixture
def dispatcher(notifier: AsyncMock, test_settings: Settings) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, test_settings)


@pytest.fixture
def assignment_service(store, locks, dispatcher) -> AssignmentService:
    return AssignmentService(store=store, locks=locks, dispatcher=dispatcher)


@pytest.fixture
def enrollment_service(store, locks, dispatcher) -> EnrollmentService:
    return EnrollmentService(store=store, locks=locks, dispatcher=dispatcher)


@pytest.fixture
def full_grade5_section(store: InMemoryStore) -> dict[str, FakeInstructor]:
    """Grade 5 section 1 with one instructor bound to every subject."""
    staff = {}
    for subject in ("Math", "Science", "English", "Filipino", "Social Studies", "MAPEH"):
        instructor = store.add_instructor(f"{subject} Teacher")
        store.bind(instructor, "5", 1, subject)
        staff[subject] = instructor
    return staff
