from fastapi import APIRouter, Depends

from app.core.deadline import Deadline
from app.schemas.instructor_schemas import InstructorResponse, UpdateTitleRequest
from app.schemas.response import APIResponse, success_envelope
from app.services.dependencies import get_current_principal, get_deadline, get_instructor_service
from app.services.instructor_service import InstructorService
from app.services.policy import Principal

router = APIRouter(tags=["Instructors"])


def _out(instructor) -> dict:
    return InstructorResponse.from_instructor(instructor).model_dump(by_alias=True, mode="json")


# /instructors/profile is registered before /instructors/{user_id}
@router.get("/instructors/profile", response_model=APIResponse[InstructorResponse])
def get_own_profile(
    principal: Principal = Depends(get_current_principal),
    service: InstructorService = Depends(get_instructor_service),
):
    return success_envelope(_out(service.get_profile(principal)))


@router.put("/instructors/title", response_model=APIResponse[InstructorResponse])
def update_title(
    payload: UpdateTitleRequest,
    principal: Principal = Depends(get_current_principal),
    service: InstructorService = Depends(get_instructor_service),
    deadline: Deadline = Depends(get_deadline),
):
    instructor = service.update_title(principal, payload.title, deadline)
    return success_envelope(_out(instructor), "Title updated")


@router.get("/instructors/{user_id}", response_model=APIResponse[InstructorResponse])
def get_instructor(user_id: int, service: InstructorService = Depends(get_instructor_service)):
    return success_envelope(_out(service.get_instructor(user_id)))


@router.get("/department-instructors/{department_id}", response_model=APIResponse[list[InstructorResponse]])
def list_department_instructors(
    department_id: int,
    service: InstructorService = Depends(get_instructor_service),
):
    return success_envelope([_out(i) for i in service.list_by_department(department_id)])
