# /rollcall/core/deps.py

"""
FastAPI dependencies that gate every authenticated route.

`get_current_user_id` is the only place the API turns a bearer header into
an identity. It trusts nothing but the signed `sub` claim.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .exceptions import AuthError
from .security import VerifiedIdentity, verify_token

# auto_error=False so a missing header becomes our own AuthError (401 + {message}).
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> VerifiedIdentity:
    if credentials is None or not credentials.credentials:
        raise AuthError("Authentication required.", reason="missing")
    return verify_token(credentials.credentials)


def get_current_user_id(identity: VerifiedIdentity = Depends(get_current_identity)) -> str:
    return identity.user_id
