from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.file_schemas import FileResponse


class CommunityCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    abbreviation: str = Field(..., min_length=1, max_length=50)


class CommunityUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    abbreviation: Optional[str] = Field(None, min_length=1, max_length=50)
    lead_id: Optional[int] = None


class CommunityResponse(CamelModel):
    id: int
    name: str
    abbreviation: str
    lead_user_id: int
    profile_photo: Optional[FileResponse] = None
    participant_count: int = 0
    created_at: UTCDateTime
    updated_at: UTCDateTime


class ParticipantResponse(CamelModel):
    user_id: int
    first_name: str
    last_name: str
    is_lead: bool
    joined_at: UTCDateTime


class ParticipantCheckResponse(CamelModel):
    community_id: int
    is_participant: bool
    is_lead: bool
