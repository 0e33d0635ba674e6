"""
Order model and workflow enumerations
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from app.database import Base


class OrderState(str, enum.Enum):
    """Workflow stage of an order"""
    CREATED = "CREATED"
    ANALYSIS = "ANALYSIS"
    COMPLETED = "COMPLETED"


class OrderStatus(str, enum.Enum):
    """Lifecycle flag of an order, independent of its state"""
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"


class ServiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    DONE = "DONE"


class Order(Base):
    """Lab order entity model"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    lab = Column(String(200), nullable=False)
    patient = Column(String(200), nullable=False)
    customer = Column(String(200), nullable=False)
    services = Column(JSON, nullable=False)  # [{"name", "value", "status"}, ...]
    state = Column(String(20), default=OrderState.CREATED.value, nullable=False, index=True)
    status = Column(String(20), default=OrderStatus.ACTIVE.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Order(id={self.id}, lab='{self.lab}', state='{self.state}', status='{self.status}')>"
