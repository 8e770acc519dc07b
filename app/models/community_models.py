
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.time_utils import utcnow


class Community(Base):
    __tablename__ = "communities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    abbreviation = Column(String(50), nullable=False)

    # must always be one of the participants
    lead_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    profile_photo_file_id = Column(
        Integer, ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    lead = relationship("User", foreign_keys=[lead_user_id])
    profile_photo = relationship("File", foreign_keys=[profile_photo_file_id])

    participants = relationship(
        "CommunityParticipant",
        back_populates="community",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CommunityParticipant.joined_at.asc()",
    )
    messages = relationship(
        "ChatMessage",
        back_populates="community",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CommunityParticipant(Base):
    __tablename__ = "community_participants"

    community_id = Column(
        Integer, ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    community = relationship("Community", back_populates="participants")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_community_participant"),
    )
