from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from app.core.deadline import Deadline
from app.schemas.class_note_schemas import (
    ClassNoteCreate,
    ClassNoteResponse,
    ClassNoteUpdate,
    RemoveFilesRequest,
)
from app.schemas.common import Page, PageParams
from app.schemas.response import APIResponse, success_envelope
from app.services.class_note_service import ClassNoteService
from app.services.dependencies import get_class_note_service, get_current_principal, get_deadline
from app.services.policy import Principal
from app.utils.uploads import to_uploaded_blobs

router = APIRouter(prefix="/class-notes", tags=["Class Notes"])


def _out(note) -> dict:
    return ClassNoteResponse.model_validate(note).model_dump(by_alias=True, mode="json")


@router.get("", response_model=APIResponse[Page[ClassNoteResponse]])
def list_class_notes(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    department_id: Optional[int] = Query(None, alias="departmentId"),
    course_code: Optional[str] = Query(None, alias="courseCode"),
    service: ClassNoteService = Depends(get_class_note_service),
):
    params = PageParams(page=page, page_size=page_size)
    items, total = service.list_notes(params, department_id=department_id, course_code=course_code)
    body = Page[ClassNoteResponse].build(
        [ClassNoteResponse.model_validate(n) for n in items], total, params
    )
    return success_envelope(body.model_dump(by_alias=True, mode="json"))


@router.get("/{note_id}", response_model=APIResponse[ClassNoteResponse])
def get_class_note(note_id: int, service: ClassNoteService = Depends(get_class_note_service)):
    return success_envelope(_out(service.get(note_id)))


@router.post("", response_model=APIResponse[ClassNoteResponse], status_code=status.HTTP_201_CREATED)
def create_class_note(
    course_code: str = Form(..., alias="courseCode"),
    title: str = Form(...),
    description: str = Form(""),
    content: str = Form(""),
    department_id: int = Form(..., alias="departmentId"),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_current_principal),
    service: ClassNoteService = Depends(get_class_note_service),
    deadline: Deadline = Depends(get_deadline),
):
    data = ClassNoteCreate(
        course_code=course_code,
        title=title,
        description=description,
        content=content,
        department_id=department_id,
    )
    note = service.create(principal, data.model_dump(), to_uploaded_blobs(files), deadline)
    return success_envelope(_out(note), "Class note created")


@router.put("/{note_id}", response_model=APIResponse[ClassNoteResponse])
def update_class_note(
    note_id: int,
    payload: ClassNoteUpdate,
    principal: Principal = Depends(get_current_principal),
    service: ClassNoteService = Depends(get_class_note_service),
    deadline: Deadline = Depends(get_deadline),
):
    note = service.update(principal, note_id, payload.model_dump(exclude_none=True), deadline)
    return success_envelope(_out(note), "Class note updated")


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class_note(
    note_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ClassNoteService = Depends(get_class_note_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.delete(principal, note_id, deadline)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{note_id}/files", response_model=APIResponse[ClassNoteResponse])
def add_class_note_files(
    note_id: int,
    files: List[UploadFile] = File(...),
    principal: Principal = Depends(get_current_principal),
    service: ClassNoteService = Depends(get_class_note_service),
    deadline: Deadline = Depends(get_deadline),
):
    note = service.add_files(principal, note_id, to_uploaded_blobs(files), deadline)
    return success_envelope(_out(note), "Files added")


@router.delete("/{note_id}/files", response_model=APIResponse[ClassNoteResponse])
def remove_class_note_files(
    note_id: int,
    payload: RemoveFilesRequest,
    principal: Principal = Depends(get_current_principal),
    service: ClassNoteService = Depends(get_class_note_service),
    deadline: Deadline = Depends(get_deadline),
):
    note = service.remove_files(principal, note_id, payload.file_ids, deadline)
    return success_envelope(_out(note), "Files removed")
