from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from algomakers.db.session import get_session
from algomakers.dependencies import get_current_user
from algomakers.models.user_model import User
from algomakers.schemas.payment_schema import BillingResponse
from algomakers.crud.payment_crud import PaymentCRUD

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.get("", response_model=BillingResponse)
def get_billing(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    status: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """Current user's payment history and billing summary."""
    crud = PaymentCRUD(session)
    return crud.get_user_billing(current_user, status, date_range, search)
