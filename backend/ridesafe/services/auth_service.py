"""Auth service."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ridesafe.core.security import hash_password, verify_password
from ridesafe.models.user import User
from ridesafe.schemas.auth import RegisterRequest, UpdateProfileRequest
from ridesafe.services.phone_service import has_phone, normalize_phone


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    return db.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()


def create_user(db: Session, data: RegisterRequest) -> User:
    """Create a new user."""
    user = User(
        email=data.email.lower(),
        hashed_password=hash_password(data.password),
        full_name=data.full_name,
        phone=normalize_phone(data.phone.strip()) if has_phone(data.phone) else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Authenticate user by email and password."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def update_profile(db: Session, user: User, data: UpdateProfileRequest) -> User:
    """Update name, phone and push token. Omitted fields are left alone."""
    changes = data.model_dump(exclude_unset=True)
    if "full_name" in changes:
        user.full_name = changes["full_name"]
    if "phone" in changes:
        phone = changes["phone"]
        user.phone = normalize_phone(phone.strip()) if has_phone(phone) else None
    if "push_token" in changes:
        user.push_token = changes["push_token"] or None
    db.commit()
    db.refresh(user)
    return user
