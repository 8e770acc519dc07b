from typing import Optional

from pydantic import Field, field_validator

from app.models.enums import Term
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.file_schemas import FileResponse


class PastExamCreate(CamelModel):
    year: int = Field(..., ge=1900, le=2200)
    term: Term
    department_id: int
    course_code: str = Field(..., min_length=1, max_length=20)
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""

    @field_validator("course_code")
    @classmethod
    def uppercase_course_code(cls, v: str) -> str:
        return v.strip().upper()


class PastExamUpdate(CamelModel):
    year: Optional[int] = Field(None, ge=1900, le=2200)
    term: Optional[Term] = None
    department_id: Optional[int] = None
    course_code: Optional[str] = Field(None, min_length=1, max_length=20)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None

    @field_validator("course_code")
    @classmethod
    def uppercase_course_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class PastExamResponse(CamelModel):
    id: int
    year: int
    term: Term
    department_id: int
    course_code: str
    title: str
    content: str
    uploader_user_id: int
    file: Optional[FileResponse] = None
    created_at: UTCDateTime
    updated_at: UTCDateTime
