from typing import Optional

from app.schemas.common import CamelModel, UTCDateTime


class UpdateTitleRequest(CamelModel):
    title: str


class InstructorResponse(CamelModel):
    user_id: int
    first_name: str
    last_name: str
    email: str
    title: str
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    faculty_name: Optional[str] = None
    created_at: UTCDateTime

    @classmethod
    def from_instructor(cls, instructor) -> "InstructorResponse":
        user = instructor.user
        dept = user.department
        return cls(
            user_id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            title=instructor.title,
            department_id=user.department_id,
            department_name=dept.name if dept else None,
            faculty_name=dept.faculty.name if dept and dept.faculty else None,
            created_at=user.created_at,
        )
