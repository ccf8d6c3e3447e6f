from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlmodel import Session
from typing import List
import logging

from algomakers.db.session import get_session
from algomakers.dependencies import get_staff_user
from algomakers.models.user_model import User
from algomakers.schemas.pair_schema import PairCreate, PairRead
from algomakers.crud.pair_crud import PairCRUD

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/pairs", tags=["pairs"])


@router.get("", response_model=List[PairRead])
def list_pairs(
    session: Session = Depends(get_session),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List pairs available for subscription."""
    return PairCRUD(session).get_pairs(skip, limit)


@router.post("", response_model=PairRead, status_code=status.HTTP_201_CREATED)
def create_pair(
    pair_data: PairCreate,
    current_user: User = Depends(get_staff_user),
    session: Session = Depends(get_session)
):
    try:
        return PairCRUD(session).create_pair(pair_data, current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating pair: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating pair: {str(e)}"
        )
