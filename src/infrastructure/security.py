"""
Security utilities for authentication.

Provides:
- Password hashing (bcrypt)
- JWT access token generation and validation (python-jose, HS256)

The signing secret comes from Settings.jwt_secret and must be set per
environment; Settings.validate_required_fields() refuses the default
value in production.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from src.core.billing.errors import InvalidArgumentError


logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class BcryptPasswordHasher:
    """PasswordHasher implementation backed by bcrypt."""

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise InvalidArgumentError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or over-long password
            return False


class TokenService:
    """Issues and validates admin access tokens. The subject is the admin id."""

    def __init__(self, secret: str, algorithm: str = "HS256", expire_days: int = 30) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._expires = timedelta(days=expire_days)

    def create_access_token(
        self,
        admin_id: int,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(admin_id),
            "role": role,
            "iat": now,
            "exp": now + (expires_delta or self._expires),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> Optional[dict[str, Any]]:
        """Claims of a valid token, or None if it is malformed, forged or expired."""
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            logger.debug("Rejected access token", extra={"error": str(e)})
            return None

    def admin_id_from_token(self, token: str) -> Optional[int]:
        payload = self.decode_access_token(token)
        if not payload:
            return None
        try:
            return int(payload.get("sub"))
        except (TypeError, ValueError):
            return None
