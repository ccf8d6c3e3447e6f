from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session
from algomakers.db.session import get_session
from algomakers.dependencies import get_current_user
from algomakers.models.user_model import User
from algomakers.schemas.user_schema import UserCreate, UserRead, TokenResponse, RefreshRequest
from algomakers.crud.auth_crud import AuthCRUD
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(
    user_data: UserCreate,
    session: Session = Depends(get_session)
):
    """Register a new user."""
    return AuthCRUD(session).register_user(user_data)

@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session)
):
    """Login with email and password and return access and refresh tokens."""
    access_token, refresh_token = AuthCRUD(session).login_user(form_data.username, form_data.password)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)

@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    body: RefreshRequest,
    session: Session = Depends(get_session)
):
    """Get a new access token using refresh token."""
    access_token = AuthCRUD(session).refresh_access_token(body.refresh_token)
    return TokenResponse(access_token=access_token)

@router.get("/me", response_model=UserRead)
def read_profile(current_user: User = Depends(get_current_user)):
    return current_user
