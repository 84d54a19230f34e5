"""Service tests for enrollment transitions."""

import asyncio
from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from shared.domain.enrollment import EnrollmentStatus
from shared.domain.exceptions import (
    CapacityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shared.domain.grades import ALL_SUBJECTS


def staff_bindings(staff) -> dict:
    return {subject: instructor.id for subject, instructor in staff.items()}


@pytest.mark.service
class TestApprove:
    """Tests for approving enrollments."""

    @pytest.mark.asyncio
    async def test_approve_departmentalized(self, enrollment_service, store, full_grade5_section, notifier):
        enrollment = store.add_enrollment("Lara Santos", "5")

        approved = await enrollment_service.approve(
            enrollment.id, 1, staff_bindings(full_grade5_section)
        )

        assert approved.status == EnrollmentStatus.APPROVED.value
        assert approved.section == 1
        records = await enrollment_service.subject_enrollments(enrollment.id)
        assert len(records) == 6
        notifier.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approve_primary_tier(self, enrollment_service, store, notifier):
        adviser = store.add_instructor("Grade Two Adviser")
        store.bind(adviser, "2")
        enrollment = store.add_enrollment("Paolo Lim", "2")

        await enrollment_service.approve(enrollment.id, 4, {ALL_SUBJECTS: adviser.id})

        to_address, subject, template, data = notifier.send.await_args.args
        assert to_address == "parent@example.com"
        assert subject == "Enrollment Approved - Elementary School"
        assert template == "enrollment_approved"
        assert data["adviser"] == "Grade Two Adviser"
        assert data["room"] == "Room 204"
        assert data["shift"] == "Morning"

    @pytest.mark.asyncio
    async def test_partial_bindings_commit_nothing(self, enrollment_service, store, full_grade5_section, notifier):
        enrollment = store.add_enrollment("Mia Tan", "5")
        bindings = staff_bindings(full_grade5_section)
        bindings["Science"] = None

        with pytest.raises(ValidationError, match="please select a professor for Science"):
            await enrollment_service.approve(enrollment.id, 1, bindings)

        assert store.enrollments[enrollment.id].status == "pending"
        assert store.subject_enrollments == []
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approve_twice(self, enrollment_service, store, full_grade5_section):
        enrollment = store.add_enrollment("Twice", "5")
        bindings = staff_bindings(full_grade5_section)
        await enrollment_service.approve(enrollment.id, 1, bindings)

        with pytest.raises(InvalidStateError, match="already been processed"):
            await enrollment_service.approve(enrollment.id, 2, bindings)

        assert len(store.subject_enrollments) == 6

    @pytest.mark.asyncio
    async def test_state_checked_before_section(self, enrollment_service, store):
        enrollment = store.add_enrollment("Rejected", "5", status=EnrollmentStatus.REJECTED)

        with pytest.raises(InvalidStateError):
            await enrollment_service.approve(enrollment.id, 42, {})

    @pytest.mark.asyncio
    async def test_unknown_enrollment(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.approve(uuid4(), 1, {})

    @pytest.mark.asyncio
    async def test_unknown_instructor(self, enrollment_service, store, full_grade5_section):
        enrollment = store.add_enrollment("Ghost", "5")
        bindings = staff_bindings(full_grade5_section)
        bindings["Math"] = uuid4()

        with pytest.raises(NotFoundError):
            await enrollment_service.approve(enrollment.id, 1, bindings)

        assert store.enrollments[enrollment.id].status == "pending"

    @pytest.mark.asyncio
    async def test_full_section(self, enrollment_service, store, full_grade5_section):
        store.fill_section("5", 1, 40)
        enrollment = store.add_enrollment("Forty First", "5")

        with pytest.raises(CapacityError, match=r"40/40"):
            await enrollment_service.approve(enrollment.id, 1, staff_bindings(full_grade5_section))

    @pytest.mark.concurrency
    @pytest.mark.asyncio
    async def test_concurrent_admissions_never_exceed_capacity(
        self, enrollment_service, store, full_grade5_section
    ):
        bindings = staff_bindings(full_grade5_section)
        applicants = [store.add_enrollment(f"Applicant {n:02d}", "5") for n in range(45)]

        results = await asyncio.gather(
            *(enrollment_service.approve(e.id, 1, bindings) for e in applicants),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(results) - len(failures) == 40
        assert len(failures) == 5
        assert all(isinstance(f, CapacityError) for f in failures)

        approved = [e for e in store.enrollments.values() if e.status == "approved" and e.section == 1]
        assert len(approved) == 40
        assert len(store.subject_enrollments) == 40 * 6


@pytest.mark.service
class TestNotificationPolicy:

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_approval(self, enrollment_service, store, full_grade5_section, notifier):
        notifier.send.side_effect = RuntimeError("mail server down")
        enrollment = store.add_enrollment("Unlucky Mail", "5")

        approved = await enrollment_service.approve(
            enrollment.id, 1, staff_bindings(full_grade5_section)
        )

        assert approved.status == "approved"
        assert store.enrollments[enrollment.id].status == "approved"
        assert store.rollbacks == 0

    @pytest.mark.asyncio
    async def test_missing_contact_skips_notice(self, enrollment_service, store, notifier):
        enrollment = store.add_enrollment("No Email", "4", contact_email=None)

        await enrollment_service.reject(enrollment.id)

        notifier.send.assert_not_awaited()
        assert store.enrollments[enrollment.id].status == "rejected"


@pytest.mark.service
class TestRejectAndPlacement:
    """Tests for reject, remove-from-section and reassign."""

    @pytest.mark.asyncio
    async def test_reject_sends_update(self, enrollment_service, store, notifier):
        enrollment = store.add_enrollment("Declined", "3")

        await enrollment_service.reject(enrollment.id)

        to_address, subject, template, data = notifier.send.await_args.args
        assert subject == "Enrollment Application Update - Elementary School"
        assert template == "enrollment_rejected"
        assert data["student_name"] == "Declined"

    @pytest.mark.asyncio
    async def test_reject_require_pending(self, enrollment_service, store):
        enrollment = store.add_enrollment("Placed", "4", 2, EnrollmentStatus.APPROVED)

        with pytest.raises(InvalidStateError):
            await enrollment_service.reject(enrollment.id, require_pending=True)

        assert store.enrollments[enrollment.id].status == "approved"

    @pytest.mark.asyncio
    async def test_remove_then_reassign(self, enrollment_service, store):
        enrollment = store.add_enrollment("Mover", "4", 2, EnrollmentStatus.APPROVED)

        removed = await enrollment_service.remove_from_section(enrollment.id)
        assert removed.status == "pending"
        assert removed.section is None

        placed = await enrollment_service.reassign(enrollment.id, 5)
        assert placed.status == "approved"
        assert placed.section == 5

    @pytest.mark.asyncio
    async def test_reassign_fills_to_forty_then_rejects(self, enrollment_service, store):
        store.fill_section("4", 1, 39)
        fortieth = store.add_enrollment("Fortieth", "4", 2, EnrollmentStatus.APPROVED)
        forty_first = store.add_enrollment("Forty First", "4", 3, EnrollmentStatus.APPROVED)

        await enrollment_service.reassign(fortieth.id, 1)

        with pytest.raises(CapacityError, match=r"section full \(40/40\)"):
            await enrollment_service.reassign(forty_first.id, 1)

        assert store.enrollments[forty_first.id].section == 3

    @pytest.mark.asyncio
    async def test_reassign_within_full_section_excludes_self(self, enrollment_service, store):
        students = store.fill_section("6", 8, 40)

        placed = await enrollment_service.reassign(students[0].id, 8)

        assert placed.section == 8

    @pytest.mark.asyncio
    async def test_reassign_never_approved_stays_pending(self, enrollment_service, store, notifier):
        enrollment = store.add_enrollment("Never Approved", "5")

        with pytest.raises(InvalidStateError, match="not been approved yet"):
            await enrollment_service.reassign(enrollment.id, 3)

        record = store.enrollments[enrollment.id]
        assert record.status == "pending"
        assert record.section is None
        assert await enrollment_service.subject_enrollments(enrollment.id) == []

    @pytest.mark.asyncio
    async def test_reassign_rejected(self, enrollment_service, store):
        enrollment = store.add_enrollment("Rejected", "4", status=EnrollmentStatus.REJECTED)

        with pytest.raises(InvalidStateError):
            await enrollment_service.reassign(enrollment.id, 1)


@pytest.mark.service
class TestEnrollmentQueries:

    @pytest.mark.asyncio
    async def test_available_sections(self, enrollment_service, store):
        store.fill_section("3", 2, 40)
        store.fill_section("3", 5, 10)

        availability = await enrollment_service.available_sections("3")

        assert availability.available == [1, 3, 4, 5, 6, 7, 8]
        assert availability.occupancy[5] == 10

    @pytest.mark.asyncio
    async def test_section_roster_sorted_by_name(self, enrollment_service, store):
        store.add_enrollment("Zed", "4", 1, EnrollmentStatus.APPROVED)
        store.add_enrollment("Amy", "4", 1, EnrollmentStatus.APPROVED)
        store.add_enrollment("Pending Pat", "4")

        roster = await enrollment_service.section_roster("4", 1)

        assert [e.student_name for e in roster] == ["Amy", "Zed"]

    @pytest.mark.asyncio
    async def test_dashboard(self, enrollment_service, store, full_grade5_section):
        store.fill_section("5", 1, 3)
        store.fill_section("1", 1, 2)
        store.add_enrollment("Waiting", "2")

        summary = await enrollment_service.dashboard()

        assert summary["approved"] == 5
        assert summary["pending"] == 1
        assert summary["instructors"] == 6
        assert summary["total_sections"] == 48
        assert summary["approved_per_grade"] == {"1": 2, "5": 3}

    @pytest.mark.asyncio
    async def test_list_enrollments_newest_first(self, enrollment_service, store):
        start = datetime(2026, 6, 1, 8, 0)
        older = store.add_enrollment("Older", "4", enrolled_at=start)
        newer = store.add_enrollment("Newer", "2", enrolled_at=start + timedelta(days=1))
        store.add_enrollment(
            "Placed", "5", 1, EnrollmentStatus.APPROVED, enrolled_at=start + timedelta(days=2)
        )

        pending = await enrollment_service.list_enrollments("pending")
        everyone = await enrollment_service.list_enrollments()

        assert [e.id for e in pending] == [newer.id, older.id]
        assert [e.student_name for e in everyone] == ["Placed", "Newer", "Older"]
        assert len(await enrollment_service.list_enrollments("all")) == 3

    @pytest.mark.asyncio
    async def test_list_enrollments_unknown_status(self, enrollment_service):
        with pytest.raises(ValidationError) as exc_info:
            await enrollment_service.list_enrollments("waitlisted")

        assert exc_info.value.field == "status"
