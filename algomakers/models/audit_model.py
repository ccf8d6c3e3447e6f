from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
from enum import Enum
from typing import Optional


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    FAILED_LOGIN = "FAILED_LOGIN"
    CREATE_USER = "CREATE_USER"
    CREATE_PAIR = "CREATE_PAIR"
    CREATE_PAYMENT = "CREATE_PAYMENT"
    PROCESS_PAYMENT = "PROCESS_PAYMENT"
    UPDATE_PAYMENT = "UPDATE_PAYMENT"
    UPDATE_SUBSCRIPTION = "UPDATE_SUBSCRIPTION"


class AuditTargetType(str, Enum):
    USER = "USER"
    PAIR = "PAIR"
    SUBSCRIPTION = "SUBSCRIPTION"
    PAYMENT = "PAYMENT"
    SYSTEM = "SYSTEM"


class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    # Empty for actions driven by the payment gateway
    actor_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    action: AuditAction
    target_id: Optional[str] = Field(default=None, index=True)
    target_type: Optional[AuditTargetType] = None
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
