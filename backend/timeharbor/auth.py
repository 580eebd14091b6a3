"""Caller identity from bearer JWTs issued by the external auth service."""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from timeharbor.config import settings
from timeharbor.exceptions import NotAuthenticated
from timeharbor.schemas.auth import CurrentUser, TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def get_current_user(token: Annotated[Optional[str], Depends(oauth2_scheme)]) -> CurrentUser:
    if not token:
        raise NotAuthenticated("missing bearer token")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        token_data = TokenData(user_id=payload.get("sub"), role=payload.get("role"))
    except JWTError as e:
        raise NotAuthenticated(f"invalid token: {e}") from e
    if token_data.user_id is None:
        raise NotAuthenticated("token has no subject")
    return CurrentUser(user_id=token_data.user_id, role=token_data.role or "member")


def ensure_can_view(current_user: CurrentUser, user_id: str) -> None:
    """Members read their own reports; admins read anyone's. Stand-in for the access-control service."""
    if current_user.user_id != user_id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own timesheet data")
