from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.core.deadline import Deadline
from app.core.errors import ValidationFailed
from app.schemas.chat_schemas import ChatMessageList, ChatMessageResponse, SendTextRequest
from app.schemas.response import APIResponse, success_envelope
from app.services.chat_service import DEFAULT_LIMIT, ChatService, MessageCursor
from app.services.dependencies import get_chat_service, get_current_principal, get_deadline
from app.services.policy import Principal
from app.utils.uploads import to_uploaded_blob

router = APIRouter(prefix="/communities/{community_id}/chat", tags=["Community Chat"])


def _out(message) -> dict:
    return ChatMessageResponse.model_validate(message).model_dump(by_alias=True, mode="json")


@router.get("", response_model=APIResponse[ChatMessageList])
def get_messages(
    community_id: int,
    before: Optional[datetime] = Query(None),
    after: Optional[datetime] = Query(None),
    before_id: Optional[int] = Query(None, alias="beforeId"),
    after_id: Optional[int] = Query(None, alias="afterId"),
    limit: int = Query(DEFAULT_LIMIT),
    sender_id: Optional[int] = Query(None, alias="senderId"),
    principal: Principal = Depends(get_current_principal),
    service: ChatService = Depends(get_chat_service),
    deadline: Deadline = Depends(get_deadline),
):
    cursor = MessageCursor(
        before=before,
        after=after,
        before_id=before_id,
        after_id=after_id,
        limit=limit,
        sender_id=sender_id,
    )
    messages = service.get_messages(principal, community_id, cursor, deadline)
    data = ChatMessageList(
        items=[ChatMessageResponse.model_validate(m) for m in messages],
        count=len(messages),
    )
    return success_envelope(data.model_dump(by_alias=True, mode="json"))


@router.get("/{message_id}", response_model=APIResponse[ChatMessageResponse])
def get_message(
    community_id: int,
    message_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ChatService = Depends(get_chat_service),
):
    return success_envelope(_out(service.get_message(principal, community_id, message_id)))


@router.post("/text", response_model=APIResponse[ChatMessageResponse], status_code=status.HTTP_201_CREATED)
def send_text(
    community_id: int,
    payload: SendTextRequest,
    principal: Principal = Depends(get_current_principal),
    service: ChatService = Depends(get_chat_service),
    deadline: Deadline = Depends(get_deadline),
):
    message = service.send_text(principal, community_id, payload.content, deadline)
    return success_envelope(_out(message), "Message sent")


@router.post("/file", response_model=APIResponse[ChatMessageResponse], status_code=status.HTTP_201_CREATED)
def send_file(
    community_id: int,
    file: UploadFile = File(...),
    content: Optional[str] = Form(None),
    principal: Principal = Depends(get_current_principal),
    service: ChatService = Depends(get_chat_service),
    deadline: Deadline = Depends(get_deadline),
):
    upload = to_uploaded_blob(file)
    if upload is None:
        raise ValidationFailed("File is required", field="file")
    message = service.send_file(principal, community_id, upload, content, deadline)
    return success_envelope(_out(message), "File sent")


@router.delete("/{message_id}", response_model=APIResponse[None])
def delete_message(
    community_id: int,
    message_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ChatService = Depends(get_chat_service),
    deadline: Deadline = Depends(get_deadline),
):
    service.delete_message(principal, community_id, message_id, deadline)
    return success_envelope(None, "Message deleted")
