
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.time_utils import utcnow
from app.models.enums import RoleType


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    pwd_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # immutable after creation
    role = Column(SAEnum(RoleType, name="role_type"), nullable=False)

    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)

    # users and files reference each other; the constraint is added after both tables exist
    profile_photo_file_id = Column(
        Integer,
        ForeignKey(
            "files.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_users_profile_photo_file_id",
        ),
        nullable=True,
    )

    email_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    department = relationship("Department")
    profile_photo = relationship("File", foreign_keys=[profile_photo_file_id])
    student = relationship(
        "Student", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    instructor = relationship(
        "Instructor", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Student(Base):
    __tablename__ = "students"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    student_identifier = Column(String(8), unique=True, nullable=False)
    graduation_year = Column(Integer, nullable=True)

    user = relationship("User", back_populates="student")


class Instructor(Base):
    __tablename__ = "instructors"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    title = Column(String(100), nullable=False)

    user = relationship("User", back_populates="instructor")
