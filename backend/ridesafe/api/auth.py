"""Auth endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ridesafe.core.deps import get_current_user
from ridesafe.core.errors import AuthenticationError, ValidationError
from ridesafe.core.security import create_access_token
from ridesafe.db.session import get_db
from ridesafe.models.user import User
from ridesafe.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UpdateProfileRequest, UserMe
from ridesafe.services.auth_service import authenticate_user, create_user, get_user_by_email, update_profile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserMe)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
):
    """Register a new user."""
    if get_user_by_email(db, data.email):
        raise ValidationError("Email already registered", field="email")
    return create_user(db, data)


@router.post("/login", response_model=TokenResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Login and return access token."""
    user = authenticate_user(db, data.email, data.password)
    if not user:
        raise AuthenticationError("Invalid email or password")
    return TokenResponse(access_token=create_access_token(subject=user.id))


@router.get("/me", response_model=UserMe)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return current_user


@router.put("/me", response_model=UserMe)
def update_me(
    data: UpdateProfileRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update name, phone, or the device push token."""
    return update_profile(db, current_user, data)
