import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from unibon.database import get_db
from unibon.middleware.auth import get_user_id, sign_token, verify_bearer_token
from unibon.services.accounts import (
    EmailAlreadyRegistered,
    create_account,
    find_account_by_email,
    find_account_by_id,
    sanitize_account,
    verify_password,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    createdAt: str


class AuthResponse(BaseModel):
    user: UserOut
    token: str


class CurrentUserResponse(BaseModel):
    user: UserOut


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create an email/password account and return a session token."""
    if not request.email or not request.password or not request.name:
        raise HTTPException(status_code=400, detail="Email, password and name are required")

    if not EMAIL_PATTERN.match(request.email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    try:
        account = create_account(db, request.email, request.password, request.name)
    except EmailAlreadyRegistered:
        raise HTTPException(status_code=409, detail="User already exists")

    return AuthResponse(
        user=UserOut(**sanitize_account(account)),
        token=sign_token(account.id, account.email)
    )


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    if not request.email or not request.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    account = find_account_by_email(db, request.email)
    if not account or not verify_password(request.password, account.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AuthResponse(
        user=UserOut(**sanitize_account(account)),
        token=sign_token(account.id, account.email)
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    account = find_account_by_id(db, get_user_id(token_payload))
    if not account:
        raise HTTPException(status_code=404, detail="User not found")

    return CurrentUserResponse(user=UserOut(**sanitize_account(account)))


@router.post("/logout")
async def logout():
    """Tokens are stateless; the client just drops its copy."""
    return {"message": "Logged out successfully"}
