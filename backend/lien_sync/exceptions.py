"""Custom exceptions for the application"""
from typing import Optional, Dict, Any, List


class AppException(Exception):
    """Base exception for the application"""
    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(AppException):
    """Authentication failed"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class ValidationError(AppException):
    """Validation error"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=422, details=details)


class ConflictError(AppException):
    """Resource conflict"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CONFLICT", status_code=409, details=details)


class ServiceError(AppException):
    """External service error"""
    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="SERVICE_ERROR", status_code=503, details=details)


class BrowserLaunchError(AppException):
    """Browser could not be started after all launch attempts"""
    def __init__(self, message: str = "Browser launch failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="BROWSER_LAUNCH_FAILED", status_code=503, details=details)


class SyncError(AppException):
    """Downstream store rejected one or more batches, or nothing was syncable"""
    def __init__(
        self,
        message: str = "Sync failed",
        errors: Optional[List[str]] = None,
        result: Optional[Any] = None,
    ):
        self.errors = errors or []
        self.result = result
        super().__init__(
            message=message,
            code="SYNC_FAILED",
            status_code=502,
            details={"errors": self.errors},
        )
