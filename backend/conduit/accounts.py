"""Users: signup, login, settings, profiles and password reset."""

import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import Settings
from .errors import AuthorizationFailure, NotFound, ValidationFailure, persistence_guard
from .models import User
from .relations import is_following
from .schemas import Profile, SettingsUpdate, SignUpModel
from .security import create_reset_token, hash_password, read_reset_token, verify_password

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[\w-]{4,30}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_MIN_LENGTH = 4


def validate_username(username: str) -> str:
    if not USERNAME_RE.match(username or ""):
        raise ValidationFailure(
            "Username must be 4 to 30 letters, digits, underscores or dashes"
        )
    return username


def validate_email(email: str) -> str:
    email = (email or "").strip()
    if not EMAIL_RE.match(email):
        raise ValidationFailure("You need to provide a valid email")
    return email


def validate_password(password: str) -> str:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise ValidationFailure(
            f"You need to provide a password with at least {PASSWORD_MIN_LENGTH} characters"
        )
    return password


def validate_image(image: str) -> Optional[str]:
    image = (image or "").strip()
    if not image:
        return None
    if not image.startswith(("http://", "https://")):
        raise ValidationFailure("Image must be an http or https URL")
    return image


class LoggingMailer:
    """Stands in for email delivery: the message goes to the log."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email to %s, subject %r: %s", to, subject, body)


def get_user(db: Session, username: str) -> User:
    with persistence_guard(db, "get user", username=username):
        user = db.query(User).filter(User.username == username).first()
    if user is None:
        logger.info("No user %r", username)
        raise NotFound("User not found")
    return user


def _duplicate_of(db: Session, username: str, email: str) -> Optional[str]:
    existing_user = db.query(User).filter((User.email == email) | (User.username == username)).first()
    if existing_user is None:
        return None
    if existing_user.username == username:
        return "Duplicated user"
    return "Duplicated email"


def signup(db: Session, signup_data: SignUpModel) -> User:
    username = validate_username(signup_data.username)
    email = validate_email(signup_data.email)
    password = validate_password(signup_data.password)

    with persistence_guard(db, "signup", username=username):
        duplicate = _duplicate_of(db, username, email)
        if duplicate:
            raise ValidationFailure(duplicate)

        new_user = User(username=username, email=email, password=hash_password(password))
        db.add(new_user)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent signup took the name or email after the check
            db.rollback()
            duplicate = _duplicate_of(db, username, email)
            if duplicate is None:
                raise
            raise ValidationFailure(duplicate)
        db.refresh(new_user)

    logger.info("User %s signed up", username)
    return new_user


def authenticate(db: Session, username: str, password: str) -> User:
    with persistence_guard(db, "login", username=username):
        user = db.query(User).filter(User.username == username).first()
    if user is None or not verify_password(password, user.password):
        logger.info("Failed login for %r", username)
        raise AuthorizationFailure("Invalid username or password")
    return user


def update_settings(db: Session, username: str, update: SettingsUpdate) -> User:
    user = get_user(db, username)

    if update.password:
        if update.password != update.confirm_password:
            raise ValidationFailure("Passwords do not match")
        user.password = hash_password(validate_password(update.password))

    email = validate_email(update.email)
    if email != user.email:
        with persistence_guard(db, "settings update", username=username):
            taken = db.query(User.id).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ValidationFailure("Duplicated email")
    user.email = email
    user.bio = update.bio or None
    user.image = validate_image(update.image)

    with persistence_guard(db, "settings update", username=username):
        db.commit()
        db.refresh(user)
    return user


def get_profile(db: Session, username: str, caller: Optional[str]) -> Profile:
    user = get_user(db, username)
    return Profile(
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=is_following(db, caller, username),
    )


def request_password_reset(db: Session, email: str, settings: Settings, mailer=None) -> str:
    """Send a one-hour reset link to ``email``."""
    mailer = mailer or LoggingMailer()
    with persistence_guard(db, "password reset request"):
        user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        raise NotFound("Bad email ID: Provided email not found")

    token = create_reset_token(email, settings)
    link = f"{settings.public_url.rstrip('/')}/reset_password?token={token}"
    mailer.send(
        email,
        "Your password reset from Conduit",
        f"You can reset your password accessing the following link: {link}",
    )
    return "Email sent. Check email and click the reset url link inside."


def confirm_password_reset(
    db: Session, token: str, password: str, confirm: str, settings: Settings
) -> str:
    if password != confirm:
        raise ValidationFailure("Passwords do not match, please retry!")
    email = read_reset_token(token, settings)
    with persistence_guard(db, "password reset"):
        user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.info("Password reset for a user that no longer exists")
        raise NotFound("User does not exist!")

    user.password = hash_password(validate_password(password))
    with persistence_guard(db, "password reset", username=user.username):
        db.commit()
    # TODO: keep a list of issued reset tokens so a used one cannot be replayed
    logger.info("Password reset for %s", user.username)
    return "Password successfully changed, please, proceed to login"
