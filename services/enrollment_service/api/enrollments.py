"""
Enrollment API Endpoints

Admin review of enrollment applications and section placement.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from services.enrollment_service.dependencies import (
    AdminCaller,
    get_enrollment_service,
    require_admin,
)
from services.enrollment_service.enrollment_service import EnrollmentService

logger = structlog.get_logger(__name__)

router = APIRouter()


class ApproveRequest(BaseModel):
    """Approval with the destination section and the chosen instructors."""

    section: int = Field(..., description="Section 1-8")
    bindings: dict[str, UUID | None] = Field(
        default_factory=dict,
        description='Subject -> instructor id ("All Subjects" for grades 1-3)',
    )


class RejectRequest(BaseModel):
    require_pending: bool = False


class ReassignRequest(BaseModel):
    new_section: int = Field(..., description="Section 1-8")


class EnrollmentResponse(BaseModel):
    """Enrollment record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_name: str
    grade_level: str
    section: int | None
    status: str
    parent_name: str | None = None
    contact_email: str | None = None
    enrolled_at: datetime | None = None


class SubjectEnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subject: str
    instructor_id: UUID | None
    enrolled_at: datetime


class SectionAvailabilityResponse(BaseModel):
    grade_level: str
    available_sections: list[int]
    occupancy: dict[int, int]
    capacity: int


class DashboardResponse(BaseModel):
    approved: int
    pending: int
    rejected: int
    instructors: int
    total_sections: int
    approved_per_grade: dict[str, int]


@router.get("", response_model=list[EnrollmentResponse])
async def list_enrollments(
    status: str = "all",
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[EnrollmentResponse]:
    """Enrollment applications newest first, filtered by status (pending, approved, rejected or all)."""
    enrollments = await service.list_enrollments(status)
    return [EnrollmentResponse.model_validate(e) for e in enrollments]


@router.post("/{enrollment_id}/approve", response_model=EnrollmentResponse)
async def approve_enrollment(
    enrollment_id: UUID,
    body: ApproveRequest,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    """Approve a pending enrollment into a section."""
    enrollment = await service.approve(
        enrollment_id, body.section, body.bindings, actor_id=admin.user_id
    )
    return EnrollmentResponse.model_validate(enrollment)


@router.post("/{enrollment_id}/reject", response_model=EnrollmentResponse)
async def reject_enrollment(
    enrollment_id: UUID,
    body: RejectRequest | None = None,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    require_pending = body.require_pending if body else False
    enrollment = await service.reject(
        enrollment_id, require_pending=require_pending, actor_id=admin.user_id
    )
    return EnrollmentResponse.model_validate(enrollment)


@router.post("/{enrollment_id}/remove-from-section", response_model=EnrollmentResponse)
async def remove_from_section(
    enrollment_id: UUID,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    enrollment = await service.remove_from_section(enrollment_id, actor_id=admin.user_id)
    return EnrollmentResponse.model_validate(enrollment)


@router.post("/{enrollment_id}/reassign", response_model=EnrollmentResponse)
async def reassign_enrollment(
    enrollment_id: UUID,
    body: ReassignRequest,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    enrollment = await service.reassign(enrollment_id, body.new_section, actor_id=admin.user_id)
    return EnrollmentResponse.model_validate(enrollment)


@router.get("/{enrollment_id}/subjects", response_model=list[SubjectEnrollmentResponse])
async def subject_enrollments(
    enrollment_id: UUID,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[SubjectEnrollmentResponse]:
    records = await service.subject_enrollments(enrollment_id)
    return [SubjectEnrollmentResponse.model_validate(r) for r in records]


@router.get("/grades/{grade_level}/sections", response_model=SectionAvailabilityResponse)
async def available_sections(
    grade_level: str,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> SectionAvailabilityResponse:
    """Sections of a grade that still have seats."""
    availability = await service.available_sections(grade_level)
    return SectionAvailabilityResponse(
        grade_level=str(availability.grade),
        available_sections=availability.available,
        occupancy=availability.occupancy,
        capacity=availability.capacity,
    )


@router.get(
    "/grades/{grade_level}/sections/{section}/roster", response_model=list[EnrollmentResponse]
)
async def section_roster(
    grade_level: str,
    section: int,
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> list[EnrollmentResponse]:
    students = await service.section_roster(grade_level, section)
    return [EnrollmentResponse.model_validate(s) for s in students]


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    admin: AdminCaller = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> DashboardResponse:
    return DashboardResponse(**await service.dashboard())
