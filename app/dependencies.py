"""
FastAPI dependencies wiring the services to a request-scoped database session
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.auth.auth_handler import AuthHandler, get_auth_handler
from app.database import get_db
from app.repositories.order_repository import OrderRepository
from app.repositories.user_repository import UserRepository
from app.services.activity_logger import ActivityLogger
from app.services.auth_service import AuthService
from app.services.order_service import OrderService


def get_auth_service(
    db: Session = Depends(get_db),
    handler: AuthHandler = Depends(get_auth_handler)
) -> AuthService:
    return AuthService(UserRepository(db), handler)


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(OrderRepository(db))


def get_activity_logger(db: Session = Depends(get_db)) -> ActivityLogger:
    return ActivityLogger(db)
