from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from algomakers.core.security import decode_token
from algomakers.db.session import get_session
from algomakers.models.user_model import User
import logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session)
) -> User:
    """Decode the bearer token and return the authenticated principal."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_token(token)
    if user_id is None:
        raise credentials_exception

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return user


def get_staff_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the user is admin, manager or support."""
    if not current_user.is_staff:
        logger.warning(f"User {current_user.id} with role {current_user.role.value} denied staff access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted for non-staff users"
        )
    return current_user


def ensure_owner_or_staff(resource_user_id: str, current_user: User) -> None:
    if resource_user_id != current_user.id and not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this resource"
        )
