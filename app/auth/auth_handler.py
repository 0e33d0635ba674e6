"""
Password hashing, token issuance and the bearer-token access gate
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from jose import JWTError, jwt
import logging

from app.config import settings
from app.utils.error_handler import UnauthorizedError

logger = logging.getLogger(__name__)

# Security configuration
SECRET_KEY = settings.secret_key
ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_DAYS = settings.jwt_expires_days

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

# Header parsing is done by get_current_user so every failure is a 401
security = HTTPBearer(auto_error=False)


class AuthHandler:
    """Handles password hashing and token issuance/verification"""

    def __init__(
        self,
        secret_key: str = SECRET_KEY,
        algorithm: str = ALGORITHM,
        expires_delta: Optional[timedelta] = None
    ):
        self.pwd_context = pwd_context
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        """Hash a password with a fresh random salt"""
        return self.pwd_context.hash(password)

    def dummy_verify(self) -> None:
        """Burn a hash comparison so unknown emails cost the same as wrong passwords"""
        self.pwd_context.dummy_verify()

    def create_access_token(self, user_id, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed JWT embedding the user id"""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else self.expires_delta)
        to_encode = {"sub": str(user_id), "iat": now, "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str:
        """Verify a JWT and return the embedded user id"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise UnauthorizedError("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedError("Invalid or expired token")
        return user_id


auth_handler = AuthHandler()


def get_auth_handler() -> AuthHandler:
    return auth_handler


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    handler: AuthHandler = Depends(get_auth_handler)
) -> dict:
    """Dependency to get the current authenticated user"""
    if not request.headers.get("authorization"):
        raise UnauthorizedError("Authorization header missing")

    # HTTPBearer yields None for a non-Bearer scheme or an empty token
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Invalid authorization format")

    user_id = handler.verify_token(credentials.credentials)
    request.state.user_id = user_id
    return {"user_id": user_id}
