"""
Custom Exceptions
Application-specific exception classes
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class AppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        code: str = "app_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).replace(tzinfo=None).isoformat()
        super().__init__(self.message)


class ValidationException(AppException):
    """Invalid input, e.g. a download grant without view access"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="validation_error",
            status_code=400,
            details=details,
        )


class AuthenticationException(AppException):
    """Authentication error exception"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="authentication_error",
            status_code=401,
            details=details,
        )


class PermissionException(AppException):
    """Actor lacks the rights for the requested operation"""

    def __init__(
        self,
        message: str = "Permission denied",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="permission_denied",
            status_code=403,
            details=details,
        )


class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource: str = "Resource",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"{resource} not found",
            code="not_found",
            status_code=404,
            details=details,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="conflict",
            status_code=409,
            details=details,
        )


class ExpiredOrExhaustedException(AppException):
    """
    Magic link redemption was refused.

    Raised for every refusal cause (unknown token, revoked, expired, view
    limit reached) so callers cannot tell them apart. The cause is kept on
    ``reason`` for audit logging and is never serialized into ``details``.
    """

    def __init__(
        self,
        message: str = "This link is invalid, expired, or has reached its view limit",
        reason: str = "unavailable",
    ):
        self.reason = reason
        super().__init__(
            message=message,
            code="link_unavailable",
            status_code=410,
        )


class TransientException(AppException):
    """Storage or identity backend failed or timed out; safe to retry"""

    def __init__(
        self,
        message: str = "Service temporarily unavailable, try again later",
        service: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(
            message=message,
            code="try_again_later",
            status_code=503,
            details=details,
        )
