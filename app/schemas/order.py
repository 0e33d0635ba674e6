"""
Pydantic schemas for Order operations
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime

from app.models.order import OrderState, OrderStatus, ServiceStatus


class ServiceCreate(BaseModel):
    """A priced line item submitted with a new order"""
    name: str = Field(..., min_length=1, max_length=200, description="Service name")
    # Positivity is checked by the order engine so it can name the offending service
    value: float = Field(..., allow_inf_nan=False, description="Service price, must be greater than zero")
    status: ServiceStatus = Field(ServiceStatus.PENDING, description="Informational service status")

    @validator('name')
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Service name must not be empty')
        return v


class OrderCreate(BaseModel):
    """Schema for creating a new order"""
    lab: str = Field(..., min_length=1, max_length=200, description="Laboratory name")
    patient: str = Field(..., min_length=1, max_length=200, description="Patient name")
    customer: str = Field(..., min_length=1, max_length=200, description="Customer name")
    services: list[ServiceCreate] = Field(default_factory=list, description="Ordered list of services")

    @validator('lab', 'patient', 'customer')
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Field must not be blank')
        return v


class ServiceResponse(BaseModel):
    name: str
    value: float
    status: ServiceStatus


class OrderResponse(BaseModel):
    """Schema for order responses"""
    id: int
    lab: str
    patient: str
    customer: str
    services: list[ServiceResponse]
    state: OrderState
    status: OrderStatus
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses"""
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int
