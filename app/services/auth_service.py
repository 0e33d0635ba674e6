"""
Auth service: registration, login and token issuance
"""

import logging

from app.auth.auth_handler import AuthHandler
from app.models.user import User
from app.repositories.user_repository import UserRepository, normalize_email
from app.schemas.user import TokenResponse, UserResponse
from app.utils.error_handler import ConflictError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AuthService:
    """Registers and authenticates users"""

    def __init__(self, users: UserRepository, auth_handler: AuthHandler):
        self.users = users
        self.auth_handler = auth_handler

    async def register(self, email: str, password: str) -> TokenResponse:
        """Create a user account and return a token for it"""
        email = normalize_email(email)
        if self.users.get_by_email(email):
            logger.warning(f"Registration attempt with existing email: {email}")
            raise ConflictError("User already exists")

        hashed_password = self.auth_handler.get_password_hash(password)
        user = self.users.create(email=email, hashed_password=hashed_password)

        logger.info(f"Registered new user: {user.email} (id={user.id})")
        return self._auth_response(user)

    async def login(self, email: str, password: str) -> TokenResponse:
        """Authenticate credentials and return a fresh token"""
        user = self.users.get_by_email(email)

        if not user:
            self.auth_handler.dummy_verify()
            logger.warning(f"Login attempt with non-existent user: {normalize_email(email)}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not self.auth_handler.verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for user: {user.email}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.info(f"Successful login for user: {user.email}")
        return self._auth_response(user)

    async def get_user(self, user_id) -> UserResponse:
        """Public view of the user a verified token belongs to"""
        user = self.users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        return UserResponse.from_orm(user)

    def issue_token(self, user_id) -> str:
        return self.auth_handler.create_access_token(user_id)

    def verify_token(self, token: str) -> str:
        return self.auth_handler.verify_token(token)

    def _auth_response(self, user: User) -> TokenResponse:
        return TokenResponse(
            token=self.issue_token(user.id),
            expires_in=int(self.auth_handler.expires_delta.total_seconds()),
            user=UserResponse.from_orm(user)
        )
