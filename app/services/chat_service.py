import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from app.core.deadline import Deadline, check_deadline
from app.core.errors import NotFound, ValidationFailed
from app.models.chat_message_models import ChatMessage
from app.models.community_models import Community
from app.models.enums import MessageType, ResourceType
from app.services.community_service import get_community_or_404, is_participant
from app.services.file_service import FileService, UploadedBlob
from app.services.policy import Action, Principal, enforce
from app.utils.time_utils import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
MAX_CONTENT_LENGTH = 5000


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, limit))


@dataclass(frozen=True)
class MessageCursor:
    """
    before/after bound `created_at`; before_id/after_id turn them into
    strict (created_at, id) tuple bounds.
    """

    before: Optional[datetime] = None
    after: Optional[datetime] = None
    before_id: Optional[int] = None
    after_id: Optional[int] = None
    limit: int = DEFAULT_LIMIT
    sender_id: Optional[int] = None

    @property
    def ascending(self) -> bool:
        # only an `after`-only window reads forward; ranges read backward
        return self.after is not None and self.before is None


def apply_cursor(q: Query, cursor: MessageCursor) -> Query:
    if cursor.sender_id is not None:
        q = q.filter(ChatMessage.sender_user_id == cursor.sender_id)

    if cursor.before is not None:
        before = to_naive_utc(cursor.before)
        if cursor.before_id is not None:
            q = q.filter(
                or_(
                    ChatMessage.created_at < before,
                    and_(ChatMessage.created_at == before, ChatMessage.id < cursor.before_id),
                )
            )
        else:
            q = q.filter(ChatMessage.created_at < before)

    if cursor.after is not None:
        after = to_naive_utc(cursor.after)
        if cursor.after_id is not None:
            q = q.filter(
                or_(
                    ChatMessage.created_at > after,
                    and_(ChatMessage.created_at == after, ChatMessage.id > cursor.after_id),
                )
            )
        else:
            q = q.filter(ChatMessage.created_at > after)

    if cursor.ascending:
        q = q.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    else:
        q = q.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())

    return q.limit(clamp_limit(cursor.limit))


class ChatService:
    """
    Pull-based community chat. Reads and sends require membership in the
    committed participant set; soft-deleted rows are invisible to reads.
    """

    def __init__(self, db: Session, files: FileService):
        self.db = db
        self.files = files

    def _community_for(self, principal: Principal, community_id: int, action: Action) -> Community:
        community = get_community_or_404(self.db, community_id)
        enforce(
            principal,
            action,
            community,
            is_participant=is_participant(self.db, community.id, principal.user_id),
        )
        return community

    def _live_message_or_404(self, community_id: int, message_id: int) -> ChatMessage:
        message = (
            self.db.query(ChatMessage)
            .filter(
                ChatMessage.id == message_id,
                ChatMessage.community_id == community_id,
                ChatMessage.deleted_at.is_(None),
            )
            .first()
        )
        if not message:
            raise NotFound("Message not found")
        return message

    # -----------------------------
    # Ingestion
    # -----------------------------
    def send_text(
        self,
        principal: Principal,
        community_id: int,
        content: Optional[str],
        deadline: Optional[Deadline] = None,
    ) -> ChatMessage:
        community = self._community_for(principal, community_id, Action.SEND_CHAT)

        content = (content or "").strip()
        if not content:
            raise ValidationFailed("Message content cannot be empty", field="content")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationFailed(
                f"Message content cannot exceed {MAX_CONTENT_LENGTH} characters", field="content"
            )

        try:
            check_deadline(deadline, "insert chat message")
            message = ChatMessage(
                community_id=community.id,
                sender_user_id=principal.user_id,
                type=MessageType.TEXT,
                content=content,
                file_id=None,
            )
            self.db.add(message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.debug("Text message %s sent to community %s", message.id, community.id)
        return message

    def send_file(
        self,
        principal: Principal,
        community_id: int,
        upload: UploadedBlob,
        content: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ChatMessage:
        community = self._community_for(principal, community_id, Action.SEND_CHAT)

        content = (content or "").strip()
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationFailed(
                f"Message content cannot exceed {MAX_CONTENT_LENGTH} characters", field="content"
            )

        stored = self.files.store(upload, ResourceType.CHAT, principal.user_id, deadline=deadline)

        try:
            check_deadline(deadline, "insert chat file message")
            message = ChatMessage(
                community_id=community.id,
                sender_user_id=principal.user_id,
                type=MessageType.FILE,
                content=content,
                file_id=stored.id,
            )
            self.db.add(message)
            self.db.flush()
            self.files.attach(stored, message.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.files.discard([stored])
            raise

        logger.debug("File message %s sent to community %s", message.id, community.id)
        return message

    # -----------------------------
    # Retrieval
    # -----------------------------
    def get_messages(
        self,
        principal: Principal,
        community_id: int,
        cursor: MessageCursor,
        deadline: Optional[Deadline] = None,
    ) -> list[ChatMessage]:
        community = self._community_for(principal, community_id, Action.READ_CHAT)

        check_deadline(deadline, "load chat messages")
        q = self.db.query(ChatMessage).filter(
            ChatMessage.community_id == community.id,
            ChatMessage.deleted_at.is_(None),
        )
        return apply_cursor(q, cursor).all()

    def get_message(self, principal: Principal, community_id: int, message_id: int) -> ChatMessage:
        community = self._community_for(principal, community_id, Action.READ_CHAT)
        return self._live_message_or_404(community.id, message_id)

    def delete_message(
        self,
        principal: Principal,
        community_id: int,
        message_id: int,
        deadline: Optional[Deadline] = None,
    ) -> None:
        community = get_community_or_404(self.db, community_id)
        message = self._live_message_or_404(community.id, message_id)
        enforce(principal, Action.DELETE_CHAT_MESSAGE, message, community=community)

        try:
            check_deadline(deadline, "soft delete chat message")
            message.deleted_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Message %s in community %s deleted by user_id=%s",
            message.id,
            community.id,
            principal.user_id,
        )
