"""
Activity logging service for auditing authentication events
"""

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.activity_log import ActivityLog
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Service for logging user activities"""

    def __init__(self, db: Session):
        self.db = db

    async def log_activity(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> Optional[ActivityLog]:
        """Record an activity; a failed write never fails the request"""
        activity_log = ActivityLog(
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            ip_address=ip_address,
            user_agent=user_agent,
            error_message=error_message
        )
        try:
            self.db.add(activity_log)
            self.db.commit()
            self.db.refresh(activity_log)
            return activity_log
        except SQLAlchemyError as e:
            logger.error(f"Failed to log activity: {e}")
            self.db.rollback()
            return None

    async def log_request(
        self,
        request: Request,
        status_code: int,
        error_message: Optional[str] = None
    ) -> Optional[ActivityLog]:
        """Record an activity using the path, method and client of ``request``"""
        return await self.log_activity(
            endpoint=str(request.url.path),
            method=request.method,
            status_code=status_code,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            error_message=error_message
        )

    def get_recent_activities(self, limit: int = 100) -> list[ActivityLog]:
        """Get recent activities"""
        return (
            self.db.query(ActivityLog)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all()
        )
