"""Password hashing and bearer tokens for desk staff and requesters."""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.models.user import ROLES

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"


# ─── Password ─────────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ─── JWT ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AccessClaims:
    user_id: uuid.UUID
    role: str


def access_token_ttl() -> timedelta:
    return timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(subject: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + access_token_ttl()
    return jwt.encode(
        {"sub": subject, "role": role, "exp": expire, "type": ACCESS_TOKEN_TYPE},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def read_access_token(token: str) -> AccessClaims:
    """Decode a bearer token and check it is a usable access token.

    Raises JWTError for a bad signature, expiry, wrong type or unknown role,
    and ValueError when the subject is not a UUID.
    """
    payload = decode_token(token)
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    role = payload.get("role")
    if role not in ROLES:
        raise JWTError(f"Unknown role {role!r}")
    return AccessClaims(user_id=uuid.UUID(subject), role=role)
