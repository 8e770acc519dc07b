from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.core.config import get_settings
from app.core.errors import ExpiredToken, InvalidToken, RevokedToken, TokenNotFound
from app.models.enums import RoleType
from app.models.token_models import RefreshToken
from app.services.credential_service import CredentialService
from app.services.token_service import TokenService
from app.utils.hashing import hash_refresh_token
from app.utils.time_utils import utcnow


@pytest.fixture
def user(db, department):
    u = CredentialService(db).create_user(
        "token.owner@uni.edu.tr",
        "Secret123",
        RoleType.STUDENT,
        first_name="Token",
        last_name="Owner",
        department_id=department.id,
        student_identifier="11223344",
    )
    db.commit()
    return u


def test_access_token_round_trips_claims(db, user):
    service = TokenService(db)
    claims = service.validate_access(service.create_access_token(user))

    assert claims.user_id == user.id
    assert claims.email == "token.owner@uni.edu.tr"
    assert claims.role == RoleType.STUDENT
    assert claims.expires_at > claims.issued_at


def test_access_token_errors_are_distinct(db, user):
    service = TokenService(db)
    settings = get_settings()
    now = datetime.now(timezone.utc)

    expired = jwt.encode(
        {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "role": "STUDENT",
            "type": "access",
            "iss": settings.TOKEN_ISSUER,
            "iat": now - timedelta(hours=2),
            "exp": now - timedelta(hours=1),
        },
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(ExpiredToken):
        service.validate_access(expired)

    forged = jwt.encode(
        {"sub": "1", "user_id": 1, "email": "x@uni.edu.tr", "role": "STUDENT", "type": "access"},
        "another-secret-key-that-is-long-enough-123",
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        service.validate_access(forged)

    with pytest.raises(InvalidToken):
        service.validate_access("not-a-jwt")


def test_refresh_rotates_and_rejects_reuse(db, user):
    service = TokenService(db)
    first = service.issue(user)
    db.commit()

    second, refreshed_user = service.refresh(first.refresh_token)
    assert refreshed_user.id == user.id
    assert second.refresh_token != first.refresh_token

    consumed = (
        db.query(RefreshToken)
        .filter(RefreshToken.token_hash == hash_refresh_token(first.refresh_token))
        .populate_existing()
        .one()
    )
    assert consumed.revoked is True

    with pytest.raises(RevokedToken) as exc:
        service.refresh(first.refresh_token)
    assert exc.value.code.value == "AUTH_005"

    # the replacement is still good
    third, _ = service.refresh(second.refresh_token)
    assert third.refresh_token not in (first.refresh_token, second.refresh_token)


def test_claim_flips_a_live_token_exactly_once(db, user):
    service = TokenService(db)
    service.issue(user)
    db.commit()
    row = db.query(RefreshToken).filter(RefreshToken.user_id == user.id).one()

    assert service._claim(row.id) is True
    assert service._claim(row.id) is False
    db.commit()

    db.expire_all()
    assert db.get(RefreshToken, row.id).revoked is True


def test_refresh_losing_the_claim_race_is_revoked(db, user, monkeypatch):
    service = TokenService(db)
    pair = service.issue(user)
    db.commit()

    original_claim = TokenService._claim

    def rival_wins_first(self, token_id):
        # a concurrent refresh commits its revoke between our lookup and our claim
        assert original_claim(self, token_id) is True
        self.db.commit()
        return original_claim(self, token_id)

    monkeypatch.setattr(TokenService, "_claim", rival_wins_first)

    with pytest.raises(RevokedToken):
        service.refresh(pair.refresh_token)

    db.expire_all()
    rows = db.query(RefreshToken).filter(RefreshToken.user_id == user.id).all()
    assert len(rows) == 1
    assert rows[0].revoked is True


def test_refresh_unknown_and_expired(db, user):
    service = TokenService(db)
    with pytest.raises(TokenNotFound):
        service.refresh("does-not-exist")

    pair = service.issue(user)
    db.commit()
    row = (
        db.query(RefreshToken)
        .filter(RefreshToken.token_hash == hash_refresh_token(pair.refresh_token))
        .one()
    )
    row.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(ExpiredToken):
        service.refresh(pair.refresh_token)


def test_revoke_marks_every_live_token(db, user):
    service = TokenService(db)
    service.issue(user)
    service.issue(user)
    db.commit()

    assert service.revoke(user.id) == 2
    assert (
        db.query(RefreshToken)
        .filter(RefreshToken.user_id == user.id, RefreshToken.revoked.is_(False))
        .count()
        == 0
    )
