from typing import Optional

from app.schemas.common import CamelModel


class FacultyResponse(CamelModel):
    id: int
    name: str
    code: Optional[str] = None


class DepartmentResponse(CamelModel):
    id: int
    name: str
    code: str
    faculty_id: int
