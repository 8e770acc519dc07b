from typing import List, Optional

from pydantic import Field

from app.models.enums import MessageType
from app.schemas.common import CamelModel, UTCDateTime
from app.schemas.file_schemas import FileResponse


class SendTextRequest(CamelModel):
    content: str = Field(..., max_length=5000)


class ChatMessageResponse(CamelModel):
    id: int
    community_id: int
    sender_user_id: int
    type: MessageType
    content: Optional[str] = None
    file: Optional[FileResponse] = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class ChatMessageList(CamelModel):
    items: List[ChatMessageResponse]
    count: int
