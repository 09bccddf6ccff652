"""Custom exceptions for the SalesDesk application."""

class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(PosError):
    """Raised for missing or out-of-range input."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class ConsistencyError(PosError):
    """Raised when a sale and its customer totals could not be written together."""
    def __init__(self, message="The operation conflicted with a concurrent change", payload=None):
        super().__init__(message, 409, payload)

class UnauthorizedError(PosError):
    """Raised when the request carries no valid operator token."""
    def __init__(self, message="Unauthorized"):
        super().__init__(message, 401)

class ForbiddenError(PosError):
    """Raised when an operator lacks the role for an action."""
    def __init__(self, message="Forbidden"):
        super().__init__(message, 403)
