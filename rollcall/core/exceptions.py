# /rollcall/core/exceptions.py

"""
Domain error taxonomy.

Services raise these; `rollcall.main` turns every one of them into a JSON
`{"message": ...}` response with the matching HTTP status code, so routers
never have to translate them by hand.
"""


class RollcallError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RollcallError):
    """Malformed or missing input."""
    status_code = 400
    default_message = "Invalid request."


class AuthError(RollcallError):
    """
    Missing, malformed or expired credential.

    `reason` is one of "missing", "expired", "malformed" or "credentials"
    (bad email/password). A malformed token maps to 403, everything else
    to 401.
    """
    status_code = 401
    default_message = "Authentication required."

    def __init__(self, message: str = None, reason: str = "missing"):
        super().__init__(message)
        self.reason = reason
        if reason == "malformed":
            self.status_code = 403


class NotFoundOrUnauthorized(RollcallError):
    # Same message whether the target is missing or owned by someone else.
    status_code = 404
    default_message = "Class not found or unauthorized."


class ConflictError(RollcallError):
    status_code = 409
    default_message = "Resource already exists."


class StorageError(RollcallError):
    status_code = 500
    default_message = "Storage failure; no changes were saved."
