"""Domain exceptions raised by services.

Controllers never build HTTP errors for business rules themselves; the
exception handler registered in `main` maps each class to its status
code via `status_code`.
"""


class BusinessLogicError(Exception):
    """Base exception for business logic errors"""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(BusinessLogicError):
    """Raised when request input is missing or malformed"""
    status_code = 400


class DuplicateError(BusinessLogicError):
    """Raised when a unique record (account, connection, request) already exists"""
    status_code = 400


class InvalidStatusTransitionError(BusinessLogicError):
    """Raised when a connection or mentorship request was already answered"""
    status_code = 400


class PermissionDeniedError(BusinessLogicError):
    """Raised when the caller lacks the privilege for an operation"""
    status_code = 403


class NotFoundError(BusinessLogicError):
    """Raised when a resource is not found"""
    status_code = 404
