"""
Typed errors raised by the workflow services.

The HTTP layer maps each class to its ``status_code`` and a
``{"success": false, "message": ...}`` body (see ``fpms.main``).
"""


class WorkflowError(Exception):
    """Base exception for workflow errors"""
    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(WorkflowError):
    """Missing or malformed required field."""
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(WorkflowError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidToken(Unauthorized):
    default_message = "Invalid or expired token"


class Forbidden(WorkflowError):
    """Identity is valid but has no rights over this resource."""
    status_code = 403
    default_message = "Access forbidden"


class NotFound(WorkflowError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(WorkflowError):
    status_code = 409
    default_message = "Resource conflict"


class NoRouteConfigured(ValidationError):
    default_message = "No submitToRoles configured for current role"


class NoAppealRouteConfigured(ValidationError):
    default_message = "No appealToRoles configured for current role"


class AlreadyReviewed(ValidationError):
    default_message = "This assignment is already reviewed"


class RoleNotAssigned(ValidationError):
    default_message = "Current role is not assigned to this submission"


class ServerError(WorkflowError):
    status_code = 500
