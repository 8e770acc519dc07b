from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud.reference import list_departments, list_faculties
from app.db.database import get_db
from app.schemas.reference_schemas import DepartmentResponse, FacultyResponse
from app.schemas.response import APIResponse, success_envelope

router = APIRouter(tags=["Reference Data"])


@router.get("/faculties", response_model=APIResponse[list[FacultyResponse]])
def get_faculties(db: Session = Depends(get_db)):
    data = [FacultyResponse.model_validate(f).model_dump(by_alias=True) for f in list_faculties(db)]
    return success_envelope(data)


@router.get("/departments", response_model=APIResponse[list[DepartmentResponse]])
def get_departments(
    faculty_id: Optional[int] = Query(None, alias="facultyId"),
    db: Session = Depends(get_db),
):
    data = [
        DepartmentResponse.model_validate(d).model_dump(by_alias=True)
        for d in list_departments(db, faculty_id)
    ]
    return success_envelope(data)
