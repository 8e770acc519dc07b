
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from app.db.database import Base
from app.utils.time_utils import utcnow
from app.models.enums import ResourceType


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)  # original client filename
    path = Column(Text, nullable=False)  # blob-store handle
    url = Column(Text, nullable=False)
    size = Column(BigInteger, nullable=False)
    mime = Column(String(100), nullable=False)

    resource_type = Column(SAEnum(ResourceType, name="file_resource_type"), nullable=False)
    # NULL => unattached (orphan, eligible for sweep)
    resource_id = Column(Integer, nullable=True)

    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def attached(self) -> bool:
        return self.resource_id is not None


Index("ix_files_resource", File.resource_type, File.resource_id)
Index("ix_files_orphans", File.resource_id, File.created_at)
