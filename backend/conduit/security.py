import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import Settings, get_settings
from .errors import AuthorizationFailure

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# OAuth2 scheme to retrieve token from the request header; anonymous requests are allowed
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/users/login", auto_error=False)

RESET_PURPOSE = "password_reset"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def _encode(claims: dict, expires_delta: timedelta, settings: Settings) -> str:
    to_encode = claims.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(
        to_encode, settings.secret_key.get_secret_value(), algorithm=settings.jwt_algorithm
    )


def _decode(token: str, settings: Settings) -> dict:
    return jwt.decode(
        token, settings.secret_key.get_secret_value(), algorithms=[settings.jwt_algorithm]
    )


def create_access_token(username: str, settings: Settings) -> str:
    return _encode(
        {"sub": username},
        timedelta(minutes=settings.access_token_expire_minutes),
        settings,
    )


def create_reset_token(email: str, settings: Settings) -> str:
    return _encode(
        {"sub": email, "purpose": RESET_PURPOSE},
        timedelta(minutes=settings.reset_token_expire_minutes),
        settings,
    )


def read_reset_token(token: str, settings: Settings) -> str:
    """Return the email a reset token was issued for."""
    try:
        payload = _decode(token, settings)
    except JWTError as e:
        logger.info("Invalid reset token: %s", e)
        raise AuthorizationFailure("Invalid token provided") from e
    email = payload.get("sub")
    if payload.get("purpose") != RESET_PURPOSE or not email:
        raise AuthorizationFailure("Invalid token provided")
    return email


def username_from_token(token: Optional[str], settings: Settings) -> Optional[str]:
    if not token:
        return None
    try:
        payload = _decode(token, settings)
    except JWTError:
        logger.debug("Ignoring invalid access token")
        return None
    # reset tokens are not session tokens
    if payload.get("purpose"):
        return None
    return payload.get("sub")


def current_identity(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """The signed-in username, or None."""
    return username_from_token(token, settings)


def require_identity(username: Optional[str] = Depends(current_identity)) -> str:
    if username is None:
        raise AuthorizationFailure("You need to be authenticated")
    return username
