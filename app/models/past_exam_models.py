
from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.time_utils import utcnow
from app.models.enums import Term


class PastExam(Base):
    __tablename__ = "past_exams"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False)
    term = Column(SAEnum(Term, name="term_type"), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    course_code = Column(String(20), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)

    file_id = Column(Integer, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)

    uploader_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    file = relationship("File", foreign_keys=[file_id])
    uploader = relationship("User", foreign_keys=[uploader_user_id])
