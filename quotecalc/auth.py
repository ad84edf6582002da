"""
Bearer-token auth for the calculator.

Libraries: python-jose[cryptography] for JWT, passlib[bcrypt] for passwords.
There are no roles. A token only says which user saved a calculation
(calculated_by) or owns a template (created_by).
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """The user for these credentials, or None."""
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _signing_key() -> str:
    if not settings.JWT_SECRET:
        # Misconfiguration, not a client error
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT_SECRET is not set",
        )
    return settings.JWT_SECRET


def create_access_token(user: models.User) -> str:
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "type": TOKEN_TYPE,
        "exp": datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, _signing_key(), algorithm=settings.JWT_ALGORITHM)


def user_to_dict(user: models.User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def token_response(user: models.User) -> dict:
    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "user": user_to_dict(user),
    }


def _user_id_from_token(token: str) -> int:
    try:
        claims = jwt.decode(token, _signing_key(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    if claims.get("type") != TOKEN_TYPE:
        raise _unauthorized("Invalid token type")
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token payload")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> models.User:
    """FastAPI dependency: the signed-in user, or 401."""
    if credentials is None:
        raise _unauthorized("Authentication required")

    user = db.query(models.User).filter(
        models.User.id == _user_id_from_token(credentials.credentials)
    ).first()
    if user is None:
        raise _unauthorized("User not found")
    return user
