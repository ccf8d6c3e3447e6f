from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from algomakers.models.user_model import UserRole
import re

EMAIL_REGEX = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
TRADINGVIEW_REGEX = r'^[A-Za-z0-9_]{3,30}$'


class UserCreate(BaseModel):
    email: str
    name: Optional[str] = None
    password: str
    tradingview_username: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if not re.match(EMAIL_REGEX, v):
            raise ValueError('Invalid email address')
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        if not re.search(r'[A-Z]', v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not re.search(r'\d', v):
            raise ValueError('Password must contain at least one number')
        return v

    @field_validator('tradingview_username')
    @classmethod
    def validate_tradingview_username(cls, v):
        if v is not None and not re.match(TRADINGVIEW_REGEX, v):
            raise ValueError('TradingView username may only contain letters, numbers and underscores')
        return v


class UserRead(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    tradingview_username: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str
