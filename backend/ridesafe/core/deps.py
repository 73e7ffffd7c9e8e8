"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ridesafe.core.errors import AuthenticationError
from ridesafe.core.security import decode_access_token
from ridesafe.db.session import get_db
from ridesafe.models.user import User

security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Require authenticated user. Raises 401 if not authenticated."""
    if not credentials:
        raise AuthenticationError()
    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise AuthenticationError("Invalid or expired token")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")
    user = db.get(User, user_id)
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User is inactive")
    return user
