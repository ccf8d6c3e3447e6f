from datetime import datetime
from typing import List
from sqlmodel import Session, select
from fastapi import HTTPException, status
from algomakers.models.pair_model import Pair
from algomakers.models.audit_model import AuditAction, AuditTargetType
from algomakers.crud.audit_crud import add_audit_log
from algomakers.schemas.pair_schema import PairCreate
import logging

logger = logging.getLogger(__name__)

class PairCRUD:
    def __init__(self, session: Session):
        self.session = session

    def get_pairs(self, skip: int = 0, limit: int = 50, active_only: bool = True) -> List[Pair]:
        query = select(Pair)
        if active_only:
            query = query.where(Pair.is_active == True)
        query = query.order_by(Pair.symbol).offset(skip).limit(limit)
        return list(self.session.exec(query))

    def create_pair(self, pair_data: PairCreate, current_user_id: str) -> Pair:
        symbol = pair_data.symbol.upper()
        existing = self.session.exec(select(Pair).where(Pair.symbol == symbol)).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Pair {symbol} already exists"
            )
        pair = Pair(**pair_data.model_dump(exclude={"symbol"}), symbol=symbol, created_at=datetime.utcnow())
        self.session.add(pair)
        add_audit_log(
            self.session,
            AuditAction.CREATE_PAIR,
            target_id=pair.id,
            target_type=AuditTargetType.PAIR,
            actor_id=current_user_id,
            details={"symbol": symbol},
        )
        self.session.commit()
        self.session.refresh(pair)
        logger.info(f"Pair {symbol} created by {current_user_id}")
        return pair
