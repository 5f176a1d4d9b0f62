"""
Shared error handling for the edge gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str


class EdgeGatewayException(Exception):
    """Base exception for edge gateway services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message)


class ConfigurationError(EdgeGatewayException):
    """Required settings or bindings are missing at startup."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class AuthenticationError(EdgeGatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class NotFoundError(EdgeGatewayException):
    """Unknown route or unregistered handler."""

    status_code = 404

    def __init__(self, message: str = "Not Found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ValidationError(EdgeGatewayException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class StoreError(EdgeGatewayException):
    """Record store call failed (transport or database error, not absence)."""

    def __init__(self, message: str = "Record store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class CacheError(EdgeGatewayException):
    """Decision cache call failed."""

    status_code = 503

    def __init__(self, message: str = "Decision cache error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)


class UpstreamError(EdgeGatewayException):
    """External upstream errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "Upstream unreachable", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", f"{service}: {message}", details)
