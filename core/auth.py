"""
Core Authentication System.

Password hashing and bearer-token handling for user accounts. Accounts live in
the storage layer (`core.models.User`); this module only deals with
credentials and tokens, so it can be used by the user service and by the
request dependencies without touching the database.

Key Components:
- `PasswordManager`: bcrypt hashing and verification.
- `JWTManager`: Issues and verifies HS256 access tokens. The token subject is
  the user id; every token carries a unique ``jti`` so it can be revoked.
- `AuthenticationService`: Facade that combines both and keeps the in-process
  revocation list used by logout.
"""

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Set

import bcrypt
import jwt

from core import config
from core.exceptions import AuthenticationError
from core.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class PasswordManager:
    """Password hashing and verification"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False


class JWTManager:
    """JWT token management"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: str = "HS256",
        access_token_expire: Optional[timedelta] = None,
    ):
        self.secret_key = secret_key or os.getenv("JWT_SECRET_KEY") or self._generate_secret_key()
        self.algorithm = algorithm
        self.access_token_expire = access_token_expire or timedelta(
            minutes=config.get_access_token_expire_minutes()
        )

    def _generate_secret_key(self) -> str:
        key = secrets.token_urlsafe(32)
        logger.warning(
            "Generated new JWT secret key. This should be set via JWT_SECRET_KEY environment variable."
        )
        return key

    def create_access_token(
        self, user_id: int, username: str, expires_delta: Optional[timedelta] = None
    ) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or self.access_token_expire)

        payload = {
            "sub": str(user_id),
            "username": username,
            "type": ACCESS_TOKEN_TYPE,
            "exp": expire,
            "iat": now,
            "jti": secrets.token_urlsafe(16),
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Created access token for user {username}")
        return token

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode JWT token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError("Invalid token type")

        return payload


class AuthenticationService:
    """Token issuing, verification and revocation"""

    def __init__(self, jwt_manager: Optional[JWTManager] = None):
        self.jwt_manager = jwt_manager or JWTManager()
        self.revoked_tokens: Set[str] = set()

    def create_tokens(self, user_id: int, username: str) -> Dict[str, Any]:
        access_token = self.jwt_manager.create_access_token(user_id, username)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": int(self.jwt_manager.access_token_expire.total_seconds()),
        }

    def verify_access_token(self, token: str) -> int:
        """Verify access token and return the user id it was issued to"""
        payload = self.jwt_manager.verify_token(token)

        if payload.get("jti") in self.revoked_tokens:
            raise AuthenticationError("Token has been revoked")

        try:
            return int(payload["sub"])
        except (KeyError, ValueError):
            raise AuthenticationError("Token subject is invalid")

    def revoke_token(self, token: str) -> bool:
        try:
            payload = self.jwt_manager.verify_token(token)
        except AuthenticationError:
            return False  # already unusable

        jti = payload.get("jti")
        if not jti:
            return False
        self.revoked_tokens.add(jti)
        logger.info(f"Revoked token {jti}")
        return True


# Global authentication service
_auth_service: Optional[AuthenticationService] = None


def get_auth_service() -> AuthenticationService:
    """Get global authentication service"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthenticationService()
    return _auth_service


def init_auth_service() -> AuthenticationService:
    """Initialize global authentication service"""
    global _auth_service
    _auth_service = AuthenticationService()
    logger.info("Initialized authentication service")
    return _auth_service
