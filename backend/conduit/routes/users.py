"""
API routes for signup, login, settings and password reset
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import accounts
from ..config import Settings, get_settings
from ..db import get_db
from ..schemas import (
    LoginModel,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    SettingsUpdate,
    SignUpModel,
    TokenResponse,
    UserResponse,
)
from ..security import create_access_token, require_identity

router = APIRouter()


def get_mailer():
    return accounts.LoggingMailer()


# Signup route
@router.post("/users", response_model=TokenResponse)
def signup(
    signup_data: SignUpModel,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = accounts.signup(db, signup_data)
    return TokenResponse(
        access_token=create_access_token(user.username, settings), username=user.username
    )


# Login route
@router.post("/users/login", response_model=TokenResponse)
def login(
    login_data: LoginModel,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = accounts.authenticate(db, login_data.username, login_data.password)
    return TokenResponse(
        access_token=create_access_token(user.username, settings), username=user.username
    )


@router.get("/user", response_model=UserResponse)
def current_user(username: str = Depends(require_identity), db: Session = Depends(get_db)):
    return accounts.get_user(db, username)


@router.put("/user", response_model=UserResponse)
def update_settings(
    update: SettingsUpdate,
    username: str = Depends(require_identity),
    db: Session = Depends(get_db),
):
    return accounts.update_settings(db, username, update)


@router.post("/password-reset", response_model=MessageResponse)
def request_password_reset(
    data: PasswordResetRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer=Depends(get_mailer),
):
    return MessageResponse(message=accounts.request_password_reset(db, data.email, settings, mailer))


@router.post("/password-reset/confirm", response_model=MessageResponse)
def confirm_password_reset(
    data: PasswordResetConfirm,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return MessageResponse(
        message=accounts.confirm_password_reset(
            db, data.token, data.password, data.confirm, settings
        )
    )
