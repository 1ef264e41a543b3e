import hashlib
import secrets
from datetime import datetime, timedelta

from passlib.context import CryptContext

from coursehub.core import config
from coursehub.database import utcnow

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=config.PASSWORD_HASH_ROUNDS,
)


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Digest not produced by this context.
        return False


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def issue_reset_token(expires_minutes: int | None = None) -> tuple[str, str, datetime]:
    """Return ``(raw_token, stored_digest, expiry)``.

    Only the digest is meant to be persisted; the raw token goes to the user.
    """
    raw_token = secrets.token_hex(20)
    window = expires_minutes or config.RESET_TOKEN_EXPIRES_MINUTES
    return raw_token, hash_reset_token(raw_token), utcnow() + timedelta(minutes=window)
