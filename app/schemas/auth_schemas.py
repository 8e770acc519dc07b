from typing import Optional

from pydantic import Field

from app.models.enums import RoleType
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.file_schemas import FileResponse


class RegisterRequest(CamelModel):
    email: str
    password: str
    first_name: str
    last_name: str
    role_type: RoleType
    department_id: Optional[int] = None

    # STUDENT
    student_id: Optional[str] = None
    graduation_year: Optional[int] = Field(None, ge=1900, le=2200)

    # INSTRUCTOR
    title: Optional[str] = Field(None, max_length=100)


class LoginRequest(CamelModel):
    email: str
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class EmailRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str


class UpdateProfileRequest(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_expires_in: int


class StudentInfo(CamelModel):
    student_id: str
    graduation_year: Optional[int] = None


class InstructorInfo(CamelModel):
    title: str


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: RoleType
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    faculty_name: Optional[str] = None
    email_verified: bool
    profile_photo: Optional[FileResponse] = None
    student: Optional[StudentInfo] = None
    instructor: Optional[InstructorInfo] = None
    created_at: UTCDateTime

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        dept = user.department
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            department_id=user.department_id,
            department_name=dept.name if dept else None,
            faculty_name=dept.faculty.name if dept and dept.faculty else None,
            email_verified=user.email_verified,
            profile_photo=FileResponse.model_validate(user.profile_photo) if user.profile_photo else None,
            student=(
                StudentInfo(
                    student_id=user.student.student_identifier,
                    graduation_year=user.student.graduation_year,
                )
                if user.student
                else None
            ),
            instructor=InstructorInfo(title=user.instructor.title) if user.instructor else None,
            created_at=user.created_at,
        )


class AuthResponse(CamelModel):
    user: UserResponse
    tokens: TokenResponse
