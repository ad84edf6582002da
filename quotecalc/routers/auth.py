"""
Auth endpoints — register, login, current user.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..auth import (
    authenticate_user,
    get_current_user,
    hash_password,
    normalize_email,
    token_response,
    user_to_dict,
)
from ..database import get_db
from ..schemas import LoginRequest, RegisterRequest

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register")
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    email = normalize_email(request.email)
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = models.User(email=email, password_hash=hash_password(request.password), name=request.name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return token_response(user)


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, request.email, request.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return token_response(user)


@router.get("/me")
def me(current_user: models.User = Depends(get_current_user)):
    return user_to_dict(current_user)
