"""
Instructor Assignment API Endpoints

Admin-only management of instructor bindings.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from services.enrollment_service.assignment_service import AssignmentService
from services.enrollment_service.dependencies import (
    AdminCaller,
    get_assignment_service,
    require_admin,
)
from shared.domain.bindings import Binding, GradeSchedule

logger = structlog.get_logger(__name__)

router = APIRouter()


class BindingRequestBody(BaseModel):
    """Primary binding or section assignment request."""

    grade_level: str = Field(..., description="Grade 1-6")
    section: int | None = Field(default=None, description="Section 1-8 (grades 4-6)")
    subject: str | None = Field(default=None, description="Subject (grades 4-6)")
    days: list[str] | None = None
    start_time: str | None = Field(default=None, description="HH:MM")
    end_time: str | None = Field(default=None, description="HH:MM")


class BindingResponse(BaseModel):
    """One entry of an instructor's merged bindings."""

    assignment_id: UUID | None
    instructor_id: UUID
    instructor_name: str
    grade_level: str
    section: int | None
    subject: str | None
    room: str | None
    is_primary: bool
    days: list[str] | None = None
    start_time: str | None = None
    end_time: str | None = None

    @classmethod
    def from_binding(cls, binding: Binding) -> "BindingResponse":
        schedule = binding.schedule
        return cls(
            assignment_id=binding.assignment_id,
            instructor_id=binding.instructor_id,
            instructor_name=binding.instructor_name,
            grade_level=str(binding.grade),
            section=binding.section,
            subject=binding.subject,
            room=binding.room,
            is_primary=binding.is_primary,
            days=sorted(schedule.days) if schedule else None,
            start_time=f"{schedule.start:%H:%M}" if schedule else None,
            end_time=f"{schedule.end:%H:%M}" if schedule else None,
        )


class CandidateResponse(BaseModel):
    instructor_id: UUID
    instructor_name: str


class DeleteInstructorResponse(BaseModel):
    instructor_id: UUID
    removed_assignments: int


class ClassEntryResponse(BaseModel):
    instructor_id: UUID
    instructor_name: str
    subject: str
    section: int | None
    room: str
    time_slot: str


class GradeScheduleResponse(BaseModel):
    """Shift, class hours and teaching staff of one grade."""

    grade_level: str
    shift: str
    time_window: str
    classes: list[ClassEntryResponse]

    @classmethod
    def from_schedule(cls, schedule: GradeSchedule) -> "GradeScheduleResponse":
        return cls(
            grade_level=str(schedule.grade),
            shift=schedule.shift.value,
            time_window=schedule.time_window,
            classes=[
                ClassEntryResponse(
                    instructor_id=entry.instructor_id,
                    instructor_name=entry.instructor_name,
                    subject=entry.subject,
                    section=entry.section,
                    room=entry.room or "TBA",
                    time_slot=entry.time_slot,
                )
                for entry in schedule.classes
            ],
        )


@router.put("/{instructor_id}/primary", response_model=BindingResponse)
async def assign_primary(
    instructor_id: UUID,
    body: BindingRequestBody,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> BindingResponse:
    """Create or replace an instructor's primary binding."""
    binding = await service.assign_primary(
        instructor_id,
        body.grade_level,
        section=body.section,
        subject=body.subject,
        days=body.days,
        start_time=body.start_time,
        end_time=body.end_time,
        actor_id=admin.user_id,
    )
    return BindingResponse.from_binding(binding)


@router.post(
    "/{instructor_id}/assignments",
    response_model=BindingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_section_assignment(
    instructor_id: UUID,
    body: BindingRequestBody,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> BindingResponse:
    """Add a section assignment (grades 4-6)."""
    binding = await service.add_section_assignment(
        instructor_id,
        body.grade_level,
        body.section,
        body.subject,
        days=body.days,
        start_time=body.start_time,
        end_time=body.end_time,
        actor_id=admin.user_id,
    )
    return BindingResponse.from_binding(binding)


@router.delete(
    "/{instructor_id}/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_section_assignment(
    instructor_id: UUID,
    assignment_id: UUID,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> None:
    await service.remove_section_assignment(instructor_id, assignment_id, actor_id=admin.user_id)


@router.get("/{instructor_id}/assignments", response_model=list[BindingResponse])
async def list_bindings(
    instructor_id: UUID,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> list[BindingResponse]:
    bindings = await service.list_bindings(instructor_id)
    return [BindingResponse.from_binding(b) for b in bindings]


@router.delete("/{instructor_id}", response_model=DeleteInstructorResponse)
async def delete_instructor(
    instructor_id: UUID,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> DeleteInstructorResponse:
    """Delete an instructor account together with its bindings."""
    removed = await service.delete_instructor(instructor_id, actor_id=admin.user_id)
    return DeleteInstructorResponse(instructor_id=instructor_id, removed_assignments=removed)


@router.get("/grades/{grade_level}/candidates", response_model=dict[str, list[CandidateResponse]])
async def instructors_for_section(
    grade_level: str,
    section: int | None = None,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> dict[str, list[CandidateResponse]]:
    """Instructors to choose from per subject when approving into a section."""
    candidates = await service.instructors_for_section(grade_level, section)
    return {
        subject: [
            CandidateResponse(instructor_id=b.instructor_id, instructor_name=b.instructor_name)
            for b in bindings
        ]
        for subject, bindings in candidates.items()
    }


@router.get("/grades/{grade_level}/taken-sections", response_model=dict[int, str])
async def taken_sections(
    grade_level: str,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> dict[int, str]:
    return await service.taken_sections(grade_level)


@router.get("/schedules", response_model=list[GradeScheduleResponse])
async def class_schedules(
    grade_level: str | None = None,
    admin: AdminCaller = Depends(require_admin),
    service: AssignmentService = Depends(get_assignment_service),
) -> list[GradeScheduleResponse]:
    """Class schedule overview per grade (all grades unless grade_level is given)."""
    schedules = await service.class_schedules(grade_level)
    return [GradeScheduleResponse.from_schedule(s) for s in schedules]
