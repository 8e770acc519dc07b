from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.deadline import Deadline
from app.core.errors import InvalidToken, TokenNotFound
from app.db.database import get_db
from app.models.user_models import User
from app.services.auth_service import AuthService
from app.services.chat_service import ChatService
from app.services.class_note_service import ClassNoteService
from app.services.community_service import CommunityService
from app.services.email_service import EmailSender, ResendEmailSender
from app.services.file_service import FileService
from app.services.instructor_service import InstructorService
from app.services.past_exam_service import PastExamService
from app.services.policy import Principal
from app.services.storage import BlobStore, LocalBlobStore
from app.services.token_service import TokenService
from app.services.user_service import UserService

# HTTPBearer for extracting Bearer token from Authorization header
http_bearer = HTTPBearer(auto_error=False)


def get_deadline(settings: Settings = Depends(get_settings)) -> Deadline:
    return Deadline.after(settings.REQUEST_TIMEOUT_SECONDS)


@lru_cache
def build_blob_store(upload_dir: str, base_url: str) -> LocalBlobStore:
    return LocalBlobStore(upload_dir, base_url)


def get_blob_store(settings: Settings = Depends(get_settings)) -> BlobStore:
    return build_blob_store(settings.UPLOAD_DIR, settings.FILE_BASE_URL)


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return ResendEmailSender(settings)


# -----------------------------
# Principal
# -----------------------------
def _get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if not credentials or not credentials.credentials:
        raise TokenNotFound("Authorization header is missing")
    if not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise InvalidToken("Bearer token required")
    return credentials.credentials


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _get_bearer_token(credentials)
    claims = TokenService(db, settings).validate_access(token)

    # deactivated accounts lose access even with a live token
    user = (
        db.query(User)
        .filter(User.id == claims.user_id, User.is_active.is_(True))
        .first()
    )
    if not user:
        raise InvalidToken("Could not validate credentials")
    return user


def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    return Principal(user_id=user.id, role=user.role, email_verified=bool(user.email_verified))


# -----------------------------
# Services
# -----------------------------
def get_file_service(
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> FileService:
    return FileService(db, store, settings)


def get_auth_service(
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, email_sender, settings)


def get_past_exam_service(
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
) -> PastExamService:
    return PastExamService(db, files)


def get_class_note_service(
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
) -> ClassNoteService:
    return ClassNoteService(db, files)


def get_community_service(
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
) -> CommunityService:
    return CommunityService(db, files)


def get_chat_service(
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
) -> ChatService:
    return ChatService(db, files)


def get_user_service(
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
) -> UserService:
    return UserService(db, files)


def get_instructor_service(db: Session = Depends(get_db)) -> InstructorService:
    return InstructorService(db)
