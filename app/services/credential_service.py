import logging
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.deadline import Deadline, check_deadline
from app.core.errors import (
    AlreadyExists,
    EmailInUse,
    InvalidEmail,
    InvalidPassword,
    InvalidStudentID,
    NotFound,
    ValidationFailed,
)
from app.crud.reference import ensure_department_exists
from app.models.enums import RoleType
from app.models.user_models import Instructor, Student, User
from app.utils.hashing import get_password_hash, verify_password as _verify_hash

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50

_student_id_re = re.compile(r"^\d{8}$")


# -----------------------------
# Validation helpers
# -----------------------------
def normalize_email(email: Optional[str]) -> str:
    """
    Parses and lowercases an email; only institution addresses are accepted.
      "Alice@Uni.EDU.TR" -> "alice@uni.edu.tr"
    """
    if not email or not email.strip():
        raise InvalidEmail("Email cannot be empty", field="email")

    try:
        parsed = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise InvalidEmail(field="email")

    normalized = parsed.normalized.lower()
    suffix = get_settings().INSTITUTION_EMAIL_SUFFIX.lower()
    if not normalized.endswith(suffix):
        raise InvalidEmail(field="email")
    return normalized


def validate_password(password: Optional[str]) -> None:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise InvalidPassword(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            field="password",
        )
    if not any(ch.isalpha() for ch in password):
        raise InvalidPassword("Password must contain at least one letter", field="password")
    if not any(ch.isdigit() for ch in password):
        raise InvalidPassword("Password must contain at least one digit", field="password")


def validate_student_identifier(identifier: Optional[str]) -> str:
    identifier = (identifier or "").strip()
    if not _student_id_re.match(identifier):
        raise InvalidStudentID(field="studentId")
    return identifier


def validate_name(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationFailed(f"{field} cannot be empty", field=field)
    if len(value) < NAME_MIN_LENGTH:
        raise ValidationFailed(f"{field} must be at least {NAME_MIN_LENGTH} characters", field=field)
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationFailed(f"{field} cannot exceed {NAME_MAX_LENGTH} characters", field=field)
    return value


# -----------------------------
# Credential store
# -----------------------------
class CredentialService:
    def __init__(self, db: Session):
        self.db = db

    def email_exists(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        q = self.db.query(User.id).filter(User.email == email)
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        return q.first() is not None

    def create_user(
        self,
        email: str,
        password: str,
        role: RoleType,
        *,
        first_name: str,
        last_name: str,
        department_id: Optional[int] = None,
        student_identifier: Optional[str] = None,
        graduation_year: Optional[int] = None,
        title: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> User:
        """
        Creates the user row and exactly one role extension in a single
        transaction. Does not commit; the caller owns the transaction.
        """
        email = normalize_email(email)
        validate_password(password)
        first_name = validate_name(first_name, "firstName")
        last_name = validate_name(last_name, "lastName")

        if role == RoleType.STUDENT:
            student_identifier = validate_student_identifier(student_identifier)
        else:
            title = (title or "").strip()
            if not title:
                raise ValidationFailed("Title is required for instructors", field="title")

        if department_id is not None:
            ensure_department_exists(self.db, department_id)

        if self.email_exists(email):
            raise EmailInUse(field="email")

        if role == RoleType.STUDENT:
            taken = (
                self.db.query(Student.user_id)
                .filter(Student.student_identifier == student_identifier)
                .first()
            )
            if taken:
                raise AlreadyExists("Student ID is already registered", field="studentId")

        check_deadline(deadline, "password hash")
        pwd_hash = get_password_hash(password)
        check_deadline(deadline, "create user")

        user = User(
            email=email,
            pwd_hash=pwd_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            department_id=department_id,
            email_verified=False,
            is_active=True,
        )
        if role == RoleType.STUDENT:
            user.student = Student(
                student_identifier=student_identifier,
                graduation_year=graduation_year,
            )
        else:
            user.instructor = Instructor(title=title)

        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError:
            # lost a race on the unique email / identifier
            self.db.rollback()
            raise EmailInUse(field="email")

        logger.info("Created %s account user_id=%s", role.value, user.id)
        return user

    def find_active_by_email(self, email: str) -> User:
        user = (
            self.db.query(User)
            .filter(User.email == (email or "").strip().lower(), User.is_active.is_(True))
            .first()
        )
        if not user:
            raise NotFound("User not found")
        return user

    def get_active_by_id(self, user_id: int) -> User:
        user = (
            self.db.query(User)
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )
        if not user:
            raise NotFound("User not found")
        return user

    @staticmethod
    def verify_password(user: User, plaintext: str) -> bool:
        if not plaintext:
            return False
        return _verify_hash(plaintext, user.pwd_hash)
