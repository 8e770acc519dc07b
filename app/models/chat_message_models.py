
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.time_utils import utcnow
from app.models.enums import MessageType


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)

    community_id = Column(
        Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    sender_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(SAEnum(MessageType, name="chat_message_type"), nullable=False)
    content = Column(Text, nullable=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    # soft delete; rows with a value are never returned by reads
    deleted_at = Column(DateTime, nullable=True)

    community = relationship("Community", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_user_id])
    file = relationship("File", foreign_keys=[file_id])

    __table_args__ = (
        CheckConstraint(
            "(type = 'TEXT' AND content IS NOT NULL AND content <> '' AND file_id IS NULL) "
            "OR "
            "(type = 'FILE' AND file_id IS NOT NULL)",
            name="ck_chat_message_type_matches_payload",
        ),
    )


Index(
    "ix_chat_messages_retrieval",
    ChatMessage.community_id,
    ChatMessage.created_at.desc(),
    ChatMessage.id.desc(),
)
