from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from app.core.deadline import Deadline
from app.models.enums import Term
from app.schemas.common import Page, PageParams
from app.schemas.past_exam_schemas import PastExamCreate, PastExamResponse, PastExamUpdate
from app.schemas.response import APIResponse, success_envelope
from app.services.dependencies import get_current_principal, get_deadline, get_past_exam_service
from app.services.past_exam_service import PastExamService
from app.services.policy import Principal
from app.utils.uploads import to_uploaded_blob

router = APIRouter(prefix="/past-exams", tags=["Past Exams"])


def _out(exam) -> dict:
    return PastExamResponse.model_validate(exam).model_dump(by_alias=True, mode="json")


@router.get("", response_model=APIResponse[Page[PastExamResponse]])
def list_past_exams(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    department_id: Optional[int] = Query(None, alias="departmentId"),
    course_code: Optional[str] = Query(None, alias="courseCode"),
    year: Optional[int] = Query(None),
    term: Optional[Term] = Query(None),
    service: PastExamService = Depends(get_past_exam_service),
):
    params = PageParams(page=page, page_size=page_size)
    items, total = service.list_exams(
        params, department_id=department_id, course_code=course_code, year=year, term=term
    )
    body = Page[PastExamResponse].build(
        [PastExamResponse.model_validate(e) for e in items], total, params
    )
    return success_envelope(body.model_dump(by_alias=True, mode="json"))


@router.get("/{exam_id}", response_model=APIResponse[PastExamResponse])
def get_past_exam(exam_id: int, service: PastExamService = Depends(get_past_exam_service)):
    return success_envelope(_out(service.get(exam_id)))


@router.post("", response_model=APIResponse[PastExamResponse], status_code=status.HTTP_201_CREATED)
def create_past_exam(
    year: int = Form(...),
    term: Term = Form(...),
    department_id: int = Form(..., alias="departmentId"),
    course_code: str = Form(..., alias="courseCode"),
    title: str = Form(...),
    content: str = Form(""),
    file: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    service: PastExamService = Depends(get_past_exam_service),
    deadline: Deadline = Depends(get_deadline),
):
    data = PastExamCreate(
        year=year,
        term=term,
        department_id=department_id,
        course_code=course_code,
        title=title,
        content=content,
    )
    exam = service.create(principal, data.model_dump(), to_uploaded_blob(file), deadline)
    return success_envelope(_out(exam), "Past exam created")


@router.put("/{exam_id}", response_model=APIResponse[PastExamResponse])
def update_past_exam(
    exam_id: int,
    year: Optional[int] = Form(None),
    term: Optional[Term] = Form(None),
    department_id: Optional[int] = Form(None, alias="departmentId"),
    course_code: Optional[str] = Form(None, alias="courseCode"),
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    service: PastExamService = Depends(get_past_exam_service),
    deadline: Deadline = Depends(get_deadline),
):
    data = PastExamUpdate(
        year=year,
        term=term,
        department_id=department_id,
        course_code=course_code,
        title=title,
        content=content,
    )
    exam = service.update(
        principal,
        exam_id,
        data.model_dump(exclude_none=True),
        to_uploaded_blob(file),
        deadline,
    )
    return success_envelope(_out(exam), "Past exam updated")


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_past_exam(
    exam_id: int,
    principal: Principal = Depends(get_current_principal),
    service: PastExamService = Depends(get_past_exam_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.delete(principal, exam_id, deadline)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
