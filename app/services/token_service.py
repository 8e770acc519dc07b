import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.deadline import Deadline, check_deadline
from app.core.errors import ExpiredToken, InvalidToken, RevokedToken, TokenNotFound
from app.models.enums import RoleType
from app.models.token_models import RefreshToken
from app.models.user_models import User
from app.utils.hashing import generate_opaque_token, hash_refresh_token
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    email: str
    role: RoleType
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    token_type: str = "Bearer"


class TokenService:
    """
    Access tokens are self-validating HS256 JWTs; refresh tokens are opaque
    random strings persisted as sha256 digests and rotated on every use.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    # -----------------------------
    # Access tokens
    # -----------------------------
    def create_access_token(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "role": user.role.value,
            "type": "access",
            "iss": self.settings.TOKEN_ISSUER,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(payload, self.settings.SECRET_KEY, algorithm=self.settings.ALGORITHM)

    def validate_access(self, token: str) -> AccessClaims:
        if not token or not token.strip():
            raise InvalidToken()

        try:
            payload = jwt.decode(
                token,
                self.settings.SECRET_KEY,
                algorithms=[self.settings.ALGORITHM],
                issuer=self.settings.TOKEN_ISSUER,
                options={"require": ["exp", "iat", "sub"]},
            )
        except ExpiredSignatureError:
            raise ExpiredToken()
        except InvalidTokenError:
            raise InvalidToken()

        if payload.get("type") != "access":
            raise InvalidToken("Access token required")

        user_id = payload.get("user_id")
        email = payload.get("email")
        role = payload.get("role")
        if not isinstance(user_id, int) or user_id <= 0 or not email:
            raise InvalidToken()
        try:
            role = RoleType(role)
        except ValueError:
            raise InvalidToken()

        return AccessClaims(
            user_id=user_id,
            email=email,
            role=role,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    # -----------------------------
    # Refresh tokens
    # -----------------------------
    def issue(self, user: User) -> TokenPair:
        """
        Mints a fresh access/refresh pair and stages the refresh row.
        The caller commits, so the pair lands in the caller's transaction.
        """
        access_token = self.create_access_token(user)
        refresh_token = generate_opaque_token()

        self.db.add(
            RefreshToken(
                token_hash=hash_refresh_token(refresh_token),
                user_id=user.id,
                expires_at=utcnow() + timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS),
                revoked=False,
            )
        )
        self.db.flush()

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            refresh_expires_in=self.settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        )

    def _claim(self, token_id: int) -> bool:
        """Revokes the row only if still live; True for the single caller that flipped it."""
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def refresh(self, raw_token: str, deadline: Optional[Deadline] = None) -> tuple[TokenPair, User]:
        """
        Rotation: revoking the presented token and inserting its replacement
        commit together. The revoke is a compare-and-set on `revoked = false`,
        so of two concurrent refreshes with one token exactly one wins.
        """
        if not raw_token or not raw_token.strip():
            raise InvalidToken()

        check_deadline(deadline, "refresh lookup")
        row = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_refresh_token(raw_token.strip()))
            .first()
        )
        if not row:
            raise TokenNotFound("Refresh token not found")

        if row.revoked:
            logger.warning("Reuse of revoked refresh token for user_id=%s", row.user_id)
            raise RevokedToken()

        if row.expires_at < utcnow():
            row.revoked = True
            self.db.commit()
            raise ExpiredToken("Refresh token has expired")

        try:
            check_deadline(deadline, "refresh rotation")
            if not self._claim(row.id):
                self.db.rollback()
                raise RevokedToken()

            user = (
                self.db.query(User)
                .filter(User.id == row.user_id, User.is_active.is_(True))
                .first()
            )
            if not user:
                self.db.rollback()
                raise InvalidToken()

            pair = self.issue(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Rotated refresh token for user_id=%s", user.id)
        return pair, user

    def revoke(self, user_id: int) -> int:
        """Marks every live refresh token of the user revoked; returns how many."""
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.info("Revoked %s refresh token(s) for user_id=%s", result.rowcount, user_id)
        return result.rowcount
