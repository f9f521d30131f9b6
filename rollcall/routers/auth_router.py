# /rollcall/routers/auth_router.py

"""
This module defines the public-facing API for account actions.

It includes endpoints for:
- User registration (`/register`)
- User login and token generation (`/login`)
- Changing the password (`/change-password`)
- Updating the display name (`/profile`)

The router only wires HTTP to `user_service`; domain errors raised there are
turned into `{message}` responses by the handlers registered in `main`.
"""

from fastapi import APIRouter, Depends, status

# --- Application-specific Imports ---
from ..core.deps import get_current_user_id
from ..models import user_model
from ..services import user_service
from ..services.database_service import DatabaseService, get_db_service

# --- Router Initialization ---
router = APIRouter()


@router.post("/register", response_model=user_model.TokenResponse, status_code=status.HTTP_201_CREATED, summary="Register an Instructor")
def register_user(user_in: user_model.UserCreate, db: DatabaseService = Depends(get_db_service)):
    return user_service.register_user(user_in=user_in, db=db)


@router.post("/login", response_model=user_model.TokenResponse, summary="Log In")
def login(credentials: user_model.LoginRequest, db: DatabaseService = Depends(get_db_service)):
    """Authenticates by email and password and returns a fresh bearer token."""
    return user_service.authenticate_user(credentials=credentials, db=db)


@router.post("/change-password", response_model=user_model.MessageResponse, summary="Change Password")
def change_password(
    change: user_model.PasswordChange,
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service),
):
    return user_service.change_password(user_id=user_id, change=change, db=db)


@router.post("/profile", response_model=user_model.ProfileResponse, summary="Update Display Name")
def update_profile(
    profile: user_model.ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service),
):
    return user_service.update_display_name(user_id=user_id, profile=profile, db=db)
