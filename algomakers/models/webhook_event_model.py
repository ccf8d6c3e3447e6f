from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional


class ProcessedWebhookEvent(SQLModel, table=True):
    """One row per gateway notification that has been applied."""

    id: Optional[int] = Field(default=None, primary_key=True)
    event_key: str = Field(unique=True, index=True)
    order_id: str = Field(index=True)
    payment_status: str
    processed_at: datetime = Field(default_factory=datetime.utcnow)
