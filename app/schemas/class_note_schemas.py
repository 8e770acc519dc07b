from typing import List, Optional

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.file_schemas import FileResponse


class ClassNoteCreate(CamelModel):
    course_code: str = Field(..., min_length=1, max_length=20)
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    content: str = ""
    department_id: int

    @field_validator("course_code")
    @classmethod
    def uppercase_course_code(cls, v: str) -> str:
        return v.strip().upper()


class ClassNoteUpdate(CamelModel):
    course_code: Optional[str] = Field(None, min_length=1, max_length=20)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    content: Optional[str] = None
    department_id: Optional[int] = None

    @field_validator("course_code")
    @classmethod
    def uppercase_course_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class RemoveFilesRequest(CamelModel):
    file_ids: List[int] = Field(..., min_length=1)


class ClassNoteResponse(CamelModel):
    id: int
    course_code: str
    title: str
    description: str
    content: str
    department_id: int
    uploader_user_id: int
    files: List[FileResponse] = []
    created_at: UTCDateTime
    updated_at: UTCDateTime
