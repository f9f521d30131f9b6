# /rollcall/services/user_service.py

"""
Business logic for instructor accounts: registration, login, password
changes and the display-name profile.

Registration and login both hand back a freshly issued bearer token; the
router never touches passwords or tokens itself.
"""

import logging

from ..core import security
from ..core.exceptions import AuthError, ConflictError, ValidationError
from ..models import user_model
from .class_helpers.crud import new_id, require_text
from .class_service import require_user
from .database_service import DatabaseService

logger = logging.getLogger(__name__)


def _token_for(user) -> str:
    return security.issue_token(user.id, {"name": user.name, "email": user.email})


def register_user(user_in: user_model.UserCreate, db: DatabaseService) -> user_model.TokenResponse:
    email = require_text(user_in.email, "Email").lower()
    name = require_text(user_in.name, "Name")
    display_name = require_text(user_in.displayName, "Display name")
    if not user_in.password:
        raise ValidationError("Password is required.")

    with db.transaction(f"user:{email}"):
        if db.get_user_by_email(email) is not None:
            raise ConflictError("User with this email already exists.")
        user = db.add_user({
            "id": new_id("usr"),
            "name": name,
            "email": email,
            "password_hash": security.hash_password(user_in.password),
            "display_name": display_name,
        })
        token = _token_for(user)
        response = user_model.TokenResponse(
            message="Registration successful.",
            token=token,
            displayName=user.display_name,
        )
    logger.info("Registered user %s", response.displayName)
    return response


def authenticate_user(credentials: user_model.LoginRequest, db: DatabaseService) -> user_model.TokenResponse:
    email = require_text(credentials.email, "Email")
    if not credentials.password:
        raise ValidationError("Email and password are required.")

    user = db.get_user_by_email(email)
    if user is None or not security.verify_password(credentials.password, user.password_hash):
        logger.info("Failed login attempt")
        raise AuthError("Invalid email or password.", reason="credentials")

    return user_model.TokenResponse(
        message="Login successful.",
        token=_token_for(user),
        displayName=user.display_name,
    )


def change_password(user_id: str, change: user_model.PasswordChange, db: DatabaseService) -> user_model.MessageResponse:
    if not change.currentPassword or not change.newPassword:
        raise ValidationError("Current and new passwords are required.")

    with db.transaction(f"user-id:{user_id}"):
        user = require_user(user_id, db)
        if not security.verify_password(change.currentPassword, user.password_hash):
            # A wrong current password is a 400; the session itself stays valid.
            raise ValidationError("Incorrect current password.")
        db.update_user(user, {"password_hash": security.hash_password(change.newPassword)})
    logger.info("Password changed for %s", user_id)
    return user_model.MessageResponse(message="Password updated successfully.")


def update_display_name(user_id: str, profile: user_model.ProfileUpdate, db: DatabaseService) -> user_model.ProfileResponse:
    display_name = require_text(profile.displayName, "Display name")
    with db.transaction(f"user-id:{user_id}"):
        user = require_user(user_id, db)
        db.update_user(user, {"display_name": display_name})
        response = user_model.ProfileResponse(displayName=user.display_name)
    return response
