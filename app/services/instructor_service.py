import logging
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from app.core.deadline import Deadline, check_deadline
from app.core.errors import NotFound, ValidationFailed
from app.models.reference_models import Department
from app.models.user_models import Instructor, User
from app.services.policy import Action, Principal, enforce

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100


def validate_title(title: Optional[str]) -> str:
    # academic titles: letters, spaces, dots and hyphens
    title = (title or "").strip()
    if not title:
        raise ValidationFailed("Title cannot be empty", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationFailed(f"Title cannot exceed {TITLE_MAX_LENGTH} characters", field="title")
    if not all(ch.isalpha() or ch.isspace() or ch in ".-" for ch in title):
        raise ValidationFailed("Title contains invalid characters", field="title")
    return title


class InstructorService:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return (
            self.db.query(Instructor)
            .join(User, User.id == Instructor.user_id)
            .options(joinedload(Instructor.user))
            .filter(User.is_active.is_(True))
        )

    def get_instructor(self, user_id: int) -> Instructor:
        instructor = self._query().filter(Instructor.user_id == user_id).first()
        if not instructor:
            raise NotFound("Instructor not found")
        return instructor

    def get_profile(self, principal: Principal) -> Instructor:
        enforce(principal, Action.VIEW_INSTRUCTOR_PROFILE)
        return self.get_instructor(principal.user_id)

    def list_by_department(self, department_id: int) -> list[Instructor]:
        if not self.db.query(Department.id).filter(Department.id == department_id).first():
            raise NotFound("Department not found")
        return (
            self._query()
            .filter(User.department_id == department_id)
            .order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc())
            .all()
        )

    def update_title(
        self, principal: Principal, title: Optional[str], deadline: Optional[Deadline] = None
    ) -> Instructor:
        enforce(principal, Action.UPDATE_INSTRUCTOR_TITLE)
        title = validate_title(title)
        instructor = self.get_instructor(principal.user_id)

        if instructor.title == title:
            return instructor

        try:
            check_deadline(deadline, "update instructor title")
            instructor.title = title
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Instructor user_id=%s changed title", principal.user_id)
        return instructor
