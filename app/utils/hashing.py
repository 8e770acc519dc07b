import hashlib
import secrets
from functools import lru_cache

from pwdlib import PasswordHash

password_hash = PasswordHash.recommended()  # argon2id


def get_password_hash(password: str) -> str:
    return password_hash.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_hash.verify(plain_password, hashed_password)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return get_password_hash(secrets.token_urlsafe(16))


def verify_dummy_password(plain_password: str) -> None:
    """Runs one verify against a throwaway hash so unknown accounts cost as much as wrong passwords."""
    password_hash.verify(plain_password or "", _dummy_hash())


def generate_opaque_token(nbytes: int = 48) -> str:
    # 48 bytes -> 384 bits of entropy, url-safe
    return secrets.token_urlsafe(nbytes)


def hash_refresh_token(token: str) -> str:
    """Deterministic digest so the stored value can be looked up by index."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
