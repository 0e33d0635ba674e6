"""
Authentication endpoints for registration, login and the current user
"""

from fastapi import APIRouter, Depends, Request
import logging

from app.auth.auth_handler import get_current_user
from app.dependencies import get_activity_logger, get_auth_service
from app.schemas.user import UserRegister, UserLogin, UserResponse, TokenResponse
from app.services.activity_logger import ActivityLogger
from app.services.auth_service import AuthService
from app.utils.error_handler import LabOrderError
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=201)
@limiter.limit("5/minute")  # Strict limit to prevent spam registrations
async def register(
    request: Request,
    user_data: UserRegister,
    auth_service: AuthService = Depends(get_auth_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    """Register a new user account and return an access token"""
    try:
        result = await auth_service.register(user_data.email, user_data.password)
    except LabOrderError as e:
        await activity_logger.log_request(request, e.status_code, error_message=e.message)
        raise

    await activity_logger.log_request(request, 201)
    return result


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")  # Prevent brute force attacks
async def login(
    request: Request,
    login_data: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    """Authenticate user and return access token"""
    try:
        result = await auth_service.login(login_data.email, login_data.password)
    except LabOrderError as e:
        await activity_logger.log_request(
            request, e.status_code, error_message=f"Failed login attempt for: {login_data.email}"
        )
        raise

    await activity_logger.log_request(request, 200)
    return result


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
async def get_current_user_info(
    request: Request,
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Get current user information"""
    return await auth_service.get_user(current_user["user_id"])
