
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, and_
from sqlalchemy.orm import foreign, relationship

from app.db.database import Base
from app.utils.time_utils import utcnow
from app.models.enums import ResourceType
from app.models.file_models import File


class ClassNote(Base):
    __tablename__ = "class_notes"

    id = Column(Integer, primary_key=True, index=True)

    course_code = Column(String(20), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False)

    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)

    uploader_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    uploader = relationship("User", foreign_keys=[uploader_user_id])

    # attached files: resource_type=CLASS_NOTE, resource_id=note.id
    files = relationship(
        File,
        primaryjoin=lambda: and_(
            foreign(File.resource_id) == ClassNote.id,
            File.resource_type == ResourceType.CLASS_NOTE,
        ),
        viewonly=True,
        order_by=File.id,
    )
