import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.deadline import Deadline, check_deadline
from app.core.errors import (
    AppError,
    EmailInUse,
    ExpiredToken,
    InvalidCredentials,
    InvalidToken,
    NotFound,
)
from app.models.enums import RoleType
from app.models.token_models import EmailVerificationToken, PasswordResetToken
from app.models.user_models import User
from app.services.credential_service import (
    CredentialService,
    normalize_email,
    validate_name,
    validate_password,
)
from app.services.email_service import EmailSender
from app.services.token_service import TokenPair, TokenService
from app.utils.hashing import (
    generate_opaque_token,
    get_password_hash,
    hash_refresh_token,
    verify_dummy_password,
)
from app.utils.logger import mask_secret
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        db: Session,
        email_sender: EmailSender,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.email_sender = email_sender
        self.settings = settings or get_settings()
        self.credentials = CredentialService(db)
        self.tokens = TokenService(db, self.settings)

    # -----------------------------
    # Register / login / refresh / logout
    # -----------------------------
    def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: RoleType,
        department_id: Optional[int] = None,
        student_identifier: Optional[str] = None,
        graduation_year: Optional[int] = None,
        title: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> tuple[User, TokenPair]:
        try:
            user = self.credentials.create_user(
                email,
                password,
                role,
                first_name=first_name,
                last_name=last_name,
                department_id=department_id,
                student_identifier=student_identifier,
                graduation_year=graduation_year,
                title=title,
                deadline=deadline,
            )
            check_deadline(deadline, "issue tokens")
            pair = self.tokens.issue(user)
            verification_token = self._stage_verification_token(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Registered user_id=%s role=%s", user.id, role.value)
        self._send_verification_email(user, verification_token, swallow=True)
        return user, pair

    def login(self, email: str, password: str, deadline: Optional[Deadline] = None) -> tuple[User, TokenPair]:
        try:
            user = self.credentials.find_active_by_email(email)
        except NotFound:
            verify_dummy_password(password)
            raise InvalidCredentials()

        check_deadline(deadline, "verify password")
        if not self.credentials.verify_password(user, password):
            logger.info("Failed login for user_id=%s", user.id)
            raise InvalidCredentials()

        try:
            user.last_login_at = utcnow()
            pair = self.tokens.issue(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("User user_id=%s logged in", user.id)
        return user, pair

    def refresh(self, refresh_token: str, deadline: Optional[Deadline] = None) -> tuple[User, TokenPair]:
        pair, user = self.tokens.refresh(refresh_token, deadline)
        return user, pair

    def logout(self, user_id: int) -> int:
        return self.tokens.revoke(user_id)

    # -----------------------------
    # Email verification
    # -----------------------------
    def _stage_verification_token(self, user: User) -> str:
        raw = generate_opaque_token(32)
        self.db.add(
            EmailVerificationToken(
                token_hash=hash_refresh_token(raw),
                user_id=user.id,
                expires_at=utcnow() + timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
            )
        )
        return raw

    def _send_verification_email(self, user: User, raw_token: str, swallow: bool = False) -> None:
        link = f"{self.settings.FRONTEND_BASE_URL.rstrip('/')}/verify-email?token={raw_token}"
        body = (
            f"Hello {user.first_name},\n\n"
            f"Please verify your email address by opening the link below:\n{link}\n\n"
            f"The link expires in {self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours."
        )
        try:
            self.email_sender.send(user.email, "Verify your email address", body, secret=raw_token)
        except AppError:
            if not swallow:
                raise
            logger.warning("Verification email for user_id=%s not delivered", user.id)

    def verify_email(self, raw_token: str) -> User:
        if not raw_token or not raw_token.strip():
            raise InvalidToken("Verification token is required")

        row = (
            self.db.query(EmailVerificationToken)
            .filter(EmailVerificationToken.token_hash == hash_refresh_token(raw_token.strip()))
            .first()
        )
        if not row:
            raise InvalidToken("Invalid verification token")
        if row.expires_at < utcnow():
            self.db.delete(row)
            self.db.commit()
            raise ExpiredToken("Verification token has expired")

        try:
            user = self.credentials.get_active_by_id(row.user_id)
            user.email_verified = True
            self.db.query(EmailVerificationToken).filter(
                EmailVerificationToken.user_id == user.id
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Email verified for user_id=%s", user.id)
        return user

    def resend_verification(self, email: str) -> None:
        """Silent for unknown or already-verified addresses."""
        try:
            user = self.credentials.find_active_by_email(email)
        except NotFound:
            logger.info("Verification resend requested for unknown address")
            return
        if user.email_verified:
            return

        try:
            self.db.query(EmailVerificationToken).filter(
                EmailVerificationToken.user_id == user.id
            ).delete(synchronize_session=False)
            raw = self._stage_verification_token(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self._send_verification_email(user, raw)

    # -----------------------------
    # Password reset
    # -----------------------------
    def forgot_password(self, email: str) -> None:
        try:
            user = self.credentials.find_active_by_email(email)
        except NotFound:
            logger.info("Password reset requested for unknown address")
            return

        raw = generate_opaque_token(32)
        expires = utcnow() + timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)
        try:
            self.db.add(
                PasswordResetToken(
                    token_hash=hash_refresh_token(raw),
                    user_id=user.id,
                    expires_at=expires,
                    used=False,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Generated password reset token for user_id=%s (masked=%s), expires=%s",
            user.id,
            mask_secret(raw),
            expires.isoformat(),
        )

        link = f"{self.settings.FRONTEND_BASE_URL.rstrip('/')}/reset-password?token={raw}"
        body = (
            f"Hello {user.first_name},\n\n"
            f"Use the link below to reset your password:\n{link}\n\n"
            f"The link expires in {self.settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes."
        )
        try:
            self.email_sender.send(user.email, "Reset your password", body, secret=raw)
        except AppError:
            # the answer must not depend on whether the account exists
            logger.warning("Password reset email for user_id=%s not delivered", user.id)

    def reset_password(self, raw_token: str, new_password: str, deadline: Optional[Deadline] = None) -> None:
        validate_password(new_password)
        if not raw_token or not raw_token.strip():
            raise InvalidToken("Reset token is required")

        row = (
            self.db.query(PasswordResetToken)
            .filter(PasswordResetToken.token_hash == hash_refresh_token(raw_token.strip()))
            .first()
        )
        if not row or row.used:
            raise InvalidToken("Invalid or already used reset token")
        if row.expires_at < utcnow():
            raise ExpiredToken("Reset token has expired")

        check_deadline(deadline, "password hash")
        pwd_hash = get_password_hash(new_password)

        try:
            # single use: only one concurrent reset may consume the token
            result = self.db.execute(
                update(PasswordResetToken)
                .where(PasswordResetToken.id == row.id, PasswordResetToken.used.is_(False))
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidToken("Invalid or already used reset token")

            user = self.credentials.get_active_by_id(row.user_id)
            user.pwd_hash = pwd_hash
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        revoked = self.tokens.revoke(user.id)
        logger.info("Password reset for user_id=%s; revoked %s refresh token(s)", user.id, revoked)

    # -----------------------------
    # Profile
    # -----------------------------
    def get_profile(self, user_id: int) -> User:
        return self.credentials.get_active_by_id(user_id)

    def update_profile(
        self,
        user_id: int,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        user = self.credentials.get_active_by_id(user_id)
        verification_token = None

        try:
            if first_name is not None:
                user.first_name = validate_name(first_name, "firstName")
            if last_name is not None:
                user.last_name = validate_name(last_name, "lastName")
            if email is not None:
                new_email = normalize_email(email)
                if new_email != user.email:
                    if self.credentials.email_exists(new_email, exclude_user_id=user.id):
                        raise EmailInUse(field="email")
                    user.email = new_email
                    user.email_verified = False
                    self.db.query(EmailVerificationToken).filter(
                        EmailVerificationToken.user_id == user.id
                    ).delete(synchronize_session=False)
                    verification_token = self._stage_verification_token(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if verification_token:
            self._send_verification_email(user, verification_token, swallow=True)
        return user
