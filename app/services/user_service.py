import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.deadline import Deadline, check_deadline
from app.core.errors import NotFound
from app.crud.pagination import paginate
from app.models.enums import ResourceType, RoleType
from app.models.user_models import User
from app.schemas.common import PageParams
from app.services.file_service import IMAGE_EXTENSIONS, FileService, UploadedBlob
from app.services.policy import Action, Principal, enforce
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class UserService:
    """
    Directory reads over active accounts, plus the caller's own profile
    photo. The photo swap mirrors the community one: the old file is
    unattached and left for the sweeper.
    """

    def __init__(self, db: Session, files: FileService):
        self.db = db
        self.files = files

    def _active_user_or_404(self, user_id: int) -> User:
        user = (
            self.db.query(User)
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )
        if not user:
            raise NotFound("User not found")
        return user

    # -----------------------------
    # Directory
    # -----------------------------
    def get_user(self, principal: Principal, user_id: int) -> User:
        enforce(principal, Action.VIEW_USERS)
        return self._active_user_or_404(user_id)

    def list_users(
        self,
        principal: Principal,
        params: PageParams,
        *,
        department_id: Optional[int] = None,
        role: Optional[RoleType] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> tuple[list[User], int]:
        enforce(principal, Action.VIEW_USERS)

        q = self.db.query(User).filter(User.is_active.is_(True))
        if department_id is not None:
            q = q.filter(User.department_id == department_id)
        if role is not None:
            q = q.filter(User.role == role)
        if email and email.strip():
            q = q.filter(User.email.ilike(f"%{email.strip().lower()}%"))
        if name and name.strip():
            term = f"%{name.strip()}%"
            q = q.filter(or_(User.first_name.ilike(term), User.last_name.ilike(term)))

        q = q.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc())
        return paginate(q, params)

    # -----------------------------
    # Own profile photo
    # -----------------------------
    def update_profile_photo(
        self,
        principal: Principal,
        upload: UploadedBlob,
        deadline: Optional[Deadline] = None,
    ) -> User:
        enforce(principal, Action.UPDATE_OWN_PROFILE_PHOTO)
        user = self._active_user_or_404(principal.user_id)

        stored = self.files.store(
            upload,
            ResourceType.PROFILE_PHOTO,
            principal.user_id,
            allowed_extensions=IMAGE_EXTENSIONS,
            deadline=deadline,
        )

        try:
            check_deadline(deadline, "swap user profile photo")
            self.files.unattach(user.profile_photo)
            self.files.attach(stored, user.id)
            user.profile_photo_file_id = stored.id
            user.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.files.discard([stored])
            raise

        self.db.expire(user, ["profile_photo"])
        logger.info("User user_id=%s set profile photo file id=%s", user.id, stored.id)
        return user

    def delete_profile_photo(self, principal: Principal, deadline: Optional[Deadline] = None) -> User:
        enforce(principal, Action.UPDATE_OWN_PROFILE_PHOTO)
        user = self._active_user_or_404(principal.user_id)

        if user.profile_photo_file_id is None:
            raise NotFound("Profile photo does not exist for this user")

        try:
            check_deadline(deadline, "remove user profile photo")
            self.files.unattach(user.profile_photo)
            user.profile_photo_file_id = None
            user.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire(user, ["profile_photo"])
        return user
