"""
Credential store backed by the users table
"""

from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.utils.error_handler import ConflictError, database_operation

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """Persists user records and enforces email uniqueness"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        with database_operation(self.db, "look up user"):
            return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def get_by_id(self, user_id: int) -> Optional[User]:
        with database_operation(self.db, "look up user"):
            return self.db.query(User).filter(User.id == user_id).first()

    def create(self, email: str, hashed_password: str) -> User:
        user = User(email=normalize_email(email), hashed_password=hashed_password)
        with database_operation(self.db, "create user"):
            try:
                self.db.add(user)
                self.db.commit()
            except IntegrityError:
                # Lost a race against a concurrent registration of the same email
                self.db.rollback()
                raise ConflictError("User already exists")
            self.db.refresh(user)
        return user
