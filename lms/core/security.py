"""Security utilities: password hashing, JWT session tokens, roles, reset tokens."""

import hashlib
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError as PydanticValidationError

from lms.config import Settings
from lms.core.errors import UnauthenticatedError


class Role(str, Enum):
    """User roles."""

    USER = "USER"
    ADMIN = "ADMIN"


def is_role_allowed(role: Optional[str], allowed_roles: Iterable[str]) -> bool:
    """Return True when ``role`` is one of ``allowed_roles``."""
    if role is None:
        return False
    allowed = {r.value if isinstance(r, Role) else str(r) for r in allowed_roles}
    return str(role.value if isinstance(role, Role) else role) in allowed


class PasswordHasher:
    """Salted one-way password hashing backed by bcrypt."""

    def __init__(self, settings: Settings):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.BCRYPT_ROUNDS,
        )

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: Optional[str]) -> bool:
        if not plaintext or not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            # Unrecognised or corrupt hash
            return False


class TokenClaims(BaseModel):
    """Identity claims carried by a session token."""

    id: str
    role: Role
    email: str


class TokenIssuer:
    """Signs and verifies JWT session tokens with the server secret."""

    def __init__(self, settings: Settings):
        self._secret = settings.SECRET_KEY
        self._algorithm = settings.ALGORITHM
        self._expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def issue(self, claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token."""
        if expires_delta is None:
            expires_delta = timedelta(minutes=self._expire_minutes)
        to_encode = claims.model_dump(mode="json")
        to_encode.update(
            {
                "sub": claims.id,
                "exp": datetime.utcnow() + expires_delta,
                "type": "access",
            }
        )
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token.

        Every failure (malformed, bad signature, expired, missing claims)
        raises the same ``UnauthenticatedError``.
        """
        if not token:
            raise UnauthenticatedError()
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            raise UnauthenticatedError()

        if payload.get("type") != "access":
            raise UnauthenticatedError()

        try:
            return TokenClaims(
                id=payload.get("sub") or payload.get("id"),
                role=payload.get("role"),
                email=payload.get("email"),
            )
        except PydanticValidationError:
            raise UnauthenticatedError()


RESET_TOKEN_BYTES = 20


def generate_reset_token() -> str:
    """Random plaintext reset token (hex encoded)."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_reset_token(token: str) -> str:
    """One-way hash used to store and look up reset tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
