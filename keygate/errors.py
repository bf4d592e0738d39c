"""
Keygate error hierarchy.

Provides:
- KeygateError: base for all entitlement failures, with a consistent shape
- ValidationError: missing or malformed input
- NotFoundError / ScriptNotFoundError: referenced entity absent
- InvalidKeyError: unknown or expired key
- DuplicateKeyError: free key already issued to the user
- InvalidListKindError: list kind is neither whitelist nor blacklist
- PlanConfigError: plan-duration table is malformed

Errors carry a machine-readable code. Transport status mapping lives in the
HTTP layer, never here.
"""

from typing import Any, Optional


class KeygateError(Exception):
    """Base exception with consistent error shape."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(KeygateError):
    """Missing or malformed input. Caller error, never retried."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(code="VALIDATION_ERROR", message=message, details=details)


class NotFoundError(KeygateError):
    """Referenced entity does not exist."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(code="NOT_FOUND", message=message)


class ScriptNotFoundError(NotFoundError):
    def __init__(self, script_id: Optional[str]):
        self.script_id = script_id
        super().__init__("Script", script_id)


class InvalidKeyError(KeygateError):
    """Key is unknown or expired."""

    def __init__(self, message: str = "Invalid or expired key."):
        super().__init__(code="INVALID_KEY", message=message)


class DuplicateKeyError(KeygateError):
    """A free key was already issued to this user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            code="DUPLICATE_KEY",
            message="You have already received a key.",
            details={"user_id": user_id},
        )


class InvalidListKindError(KeygateError):
    def __init__(self, list_kind: Any):
        self.list_kind = list_kind
        super().__init__(
            code="INVALID_LIST_KIND",
            message=f"Invalid list type: {list_kind!r}",
            details={"allowed": ["whitelist", "blacklist"]},
        )


class PlanConfigError(KeygateError):
    """Raised when the plan-duration table fails validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        details = {"field": field} if field is not None else None
        super().__init__(code="PLAN_CONFIG_INVALID", message=message, details=details)
