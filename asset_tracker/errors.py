"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a stable ``code``, a ``user_message`` that is safe to show
to clients, and an HTTP ``status_code``. Anything in ``context`` is for the
server log only and never reaches the client.
"""

from __future__ import annotations

from typing import Any


class AssetTrackerError(Exception):
    code = "error"
    status_code = 500
    default_message = "Request failed."

    def __init__(self, user_message: str | None = None, **context: Any):
        self.user_message = user_message or self.default_message
        self.context = context
        super().__init__(self.user_message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.user_message, "code": self.code}


class ValidationError(AssetTrackerError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request."


class InvalidCategory(ValidationError):
    code = "invalid_category"
    default_message = "Invalid category"


class InvalidCredentials(AssetTrackerError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid username or password"


class Unauthorized(AssetTrackerError):
    code = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class NotFound(AssetTrackerError):
    code = "not_found"
    status_code = 404
    default_message = "User not found"


class InvalidToken(AssetTrackerError):
    code = "invalid_token"
    status_code = 400
    default_message = "Invalid or expired token"


class TokenExpired(InvalidToken):
    code = "token_expired"
    default_message = "Token expired"


class GenerationError(AssetTrackerError):
    code = "generation_error"
    status_code = 500
    default_message = "Could not generate asset codes."


class DeliveryError(AssetTrackerError):
    code = "delivery_error"
    status_code = 500
    default_message = "Error sending reset link."


class StorageError(AssetTrackerError):
    code = "storage_error"
    status_code = 500
    default_message = "Storage failure."
