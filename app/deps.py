# app/deps.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.db import get_db
from app.security import decode_access_token
from models.users import User, UserRole

# Authorization: Bearer <token>
bearer_scheme = HTTPBearer()


def _user_from_token(db: Session, token: str, role: UserRole) -> User:
    subject = decode_access_token(token)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )

    prefix = f"{role.value}:"
    if not subject.startswith(prefix):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied: not a {role.value} token.",
        )

    raw_id = subject.split(":", 1)[1]
    if not raw_id.isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Corrupted token subject.",
        )

    user = (
        db.query(User)
        .filter(
            User.id == int(raw_id),
            User.role == role,
            User.is_active == True,  # noqa: E712
        )
        .first()
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{role.value.capitalize()} not found or not active.",
        )
    return user


def get_current_seller(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _user_from_token(db, credentials.credentials, UserRole.SELLER)


def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _user_from_token(db, credentials.credentials, UserRole.ADMIN)
