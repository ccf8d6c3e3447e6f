from sqlmodel import Session, select
from datetime import datetime
from fastapi import HTTPException, status
from typing import Tuple
from algomakers.models.user_model import User
from algomakers.models.audit_model import AuditAction, AuditTargetType
from algomakers.core.security import get_password_hash, create_tokens, create_access_token, decode_token
from algomakers.crud.audit_crud import add_audit_log
from algomakers.schemas.user_schema import UserCreate
import logging

logger = logging.getLogger(__name__)

class AuthCRUD:
    def __init__(self, session: Session):
        self.session = session

    def get_user_by_email(self, email: str) -> User | None:
        return self.session.exec(
            select(User).where(User.email == email.lower())
        ).first()

    def register_user(self, user_data: UserCreate) -> User:
        if self.get_user_by_email(user_data.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User with this email already exists"
            )

        user = User(
            email=user_data.email,
            name=user_data.name,
            tradingview_username=user_data.tradingview_username,
            hashed_password=get_password_hash(user_data.password),
        )
        self.session.add(user)
        add_audit_log(
            self.session,
            AuditAction.CREATE_USER,
            target_id=user.id,
            target_type=AuditTargetType.USER,
            actor_id=user.id,
            details={"email": user.email},
        )
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"Registered user {user.id} ({user.email})")
        return user

    def login_user(self, email: str, password: str) -> Tuple[str, str]:
        user = self.get_user_by_email(email)
        if not user or not user.verify_password(password):
            if user:
                add_audit_log(
                    self.session,
                    AuditAction.FAILED_LOGIN,
                    target_id=user.id,
                    target_type=AuditTargetType.USER,
                    actor_id=user.id,
                )
                self.session.commit()
            logger.warning(f"Failed login attempt for {email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is disabled"
            )

        user.last_login = datetime.utcnow()
        self.session.add(user)
        add_audit_log(
            self.session,
            AuditAction.LOGIN,
            target_id=user.id,
            target_type=AuditTargetType.USER,
            actor_id=user.id,
        )
        self.session.commit()
        return create_tokens({"sub": user.id})

    def refresh_access_token(self, refresh_token: str) -> str:
        user_id = decode_token(refresh_token, expected_type="refresh")
        user = self.session.get(User, user_id) if user_id else None
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )
        return create_access_token({"sub": user.id})
