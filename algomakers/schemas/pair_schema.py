from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class PairCreate(BaseModel):
    symbol: str = Field(min_length=1, max_length=30)
    name: Optional[str] = None
    timeframe: Optional[str] = None
    is_active: bool = True
    price_one_month: float = Field(default=0, ge=0)
    price_three_months: float = Field(default=0, ge=0)
    price_six_months: float = Field(default=0, ge=0)
    price_twelve_months: float = Field(default=0, ge=0)
    discount_one_month: float = Field(default=0, ge=0, le=100)
    discount_three_months: float = Field(default=0, ge=0, le=100)
    discount_six_months: float = Field(default=0, ge=0, le=100)
    discount_twelve_months: float = Field(default=0, ge=0, le=100)


class PairRead(PairCreate):
    id: str
    created_at: datetime

    class Config:
        from_attributes = True
