"""
Pydantic schemas for registration, login and the public user view
"""

from pydantic import BaseModel, Field, validator, EmailStr
from typing import Optional
from datetime import datetime


class UserRegister(BaseModel):
    """Schema for registering a new user"""
    email: EmailStr = Field(..., description="Valid email address")
    # bcrypt only considers the first 72 bytes
    password: str = Field(..., min_length=6, max_length=72, description="Password (6-72 characters)")

    @validator('email', pre=True)
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class UserLogin(BaseModel):
    """Schema for user login"""
    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")

    @validator('email')
    def validate_email(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError('Email is required')
        return v


class UserResponse(BaseModel):
    """Public user view (excludes the password hash)"""
    id: int
    email: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
