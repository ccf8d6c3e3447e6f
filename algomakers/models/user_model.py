from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
import uuid

from algomakers.core.security import verify_password, get_password_hash

class UserRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SUPPORT = "SUPPORT"
    USER = "USER"

STAFF_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT)

class User(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True)
    name: Optional[str] = Field(default=None, max_length=100)
    hashed_password: str
    role: UserRole = Field(default=UserRole.USER)
    tradingview_username: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def verify_password(self, plain_password: str) -> bool:
        return verify_password(plain_password, self.hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        return get_password_hash(password)
