"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class UnauthorizedError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(UnauthorizedError):
    """Unknown email or wrong password (reported identically)"""
    def __init__(self):
        super().__init__("Invalid email or password")


class AccountDeactivatedError(UnauthorizedError):
    """Account has been deactivated"""
    def __init__(self):
        super().__init__("Account is deactivated")


class TokenInvalidError(UnauthorizedError):
    """Refresh token is unknown, revoked, expired or reused"""
    def __init__(self, message: str = "Invalid or expired refresh token"):
        super().__init__(message)


# Resource Errors
class NotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ConflictError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


# Request Errors
class BadRequestError(BaseAPIException):
    """Invalid or expired one-time token, or an operation that does not apply"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)
