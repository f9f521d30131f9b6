# /rollcall/core/security.py

"""
The session/auth gate: password hashing and bearer-token handling.

Tokens are HS256 JWTs. Only the signed `sub` claim returned by
`verify_token` may be used to authorize a request; `preview_claims` exists
for clients that want to show the name or email embedded in a token and
never checks the signature.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from .config import get_settings
from .exceptions import AuthError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: str
    issued_at: datetime
    expires_at: datetime


# --- Passwords ---

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    settings = get_settings()
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# --- Tokens ---

def issue_token(
    user_id: str,
    claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Creates a signed access token for `user_id`.

    Extra `claims` (name, email) ride along for display purposes only.
    The expiry window defaults to ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    payload = dict(claims or {})
    payload.update({"sub": str(user_id), "iat": now, "exp": now + expires_delta})
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> VerifiedIdentity:
    """
    Checks the signature and expiry of `token` and returns the identity it
    was issued for. Raises AuthError(reason="expired") or
    AuthError(reason="malformed").
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Session expired. Please log in again.", reason="expired")
    except jwt.PyJWTError as e:
        logger.debug("Rejected token: %s", e)
        raise AuthError("Invalid authentication credentials.", reason="malformed")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError("Invalid authentication credentials.", reason="malformed")

    return VerifiedIdentity(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def preview_claims(token: str) -> Dict[str, Any]:
    """
    Decodes the token body WITHOUT verifying it. Display use only.
    Returns an empty dict for anything that is not a JWT.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}
