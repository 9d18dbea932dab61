"""
Error handling utilities for Sivic.

This module defines the exception hierarchy shared by the gateways, the
analysis core and the API layer.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ErrorCode(str, Enum):
    """Error codes for the Sivic API."""

    # General errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BAD_REQUEST = "BAD_REQUEST"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NOT_CONFIGURED = "NOT_CONFIGURED"

    # Solana RPC errors
    RPC_ERROR = "RPC_ERROR"
    RPC_TIMEOUT = "RPC_TIMEOUT"
    RPC_CONNECTION_ERROR = "RPC_CONNECTION_ERROR"
    RPC_HTTP_ERROR = "RPC_HTTP_ERROR"

    # Service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"


class SivicError(Exception):
    """Base exception for all Sivic errors."""

    error = "Internal error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None
    ):
        """
        Initialize a new Sivic error.

        Args:
            message: Error message
            code: Error code
            status_code: HTTP status code
            details: Additional error details
            error: Short error title returned to API clients
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        if error is not None:
            self.error = error
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to a dictionary.

        Returns:
            Dictionary representation of the error
        """
        payload: Dict[str, Any] = {
            "error": self.error,
            "message": self.message,
            "code": self.code.value,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(SivicError):
    """Exception for malformed client input."""

    error = "Invalid request"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            error=error
        )


class ConfigurationError(SivicError):
    """Exception for invalid configuration values."""

    error = "Configuration error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class NotConfiguredError(ConfigurationError):
    """Raised when an optional provider has no credentials configured.

    Callers render a "not configured" state for this instead of an error.
    """

    error = "Not configured"

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} is not configured",
            details={"provider": provider},
            code=ErrorCode.NOT_CONFIGURED
        )
        self.provider = provider


class RpcError(SivicError):
    """Exception for Solana RPC errors."""

    error = "RPC error"

    def __init__(
        self,
        message: str,
        rpc_error: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.RPC_ERROR
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"rpc_error": rpc_error or {}}
        )


class RpcTimeoutError(RpcError):
    """Exception for Solana RPC timeout errors."""

    def __init__(
        self,
        message: str,
        timeout: float,
        rpc_error: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            rpc_error=rpc_error,
            code=ErrorCode.RPC_TIMEOUT
        )
        self.details["timeout"] = timeout


class RpcConnectionError(RpcError):
    """Exception for Solana RPC connection errors."""

    def __init__(
        self,
        message: str,
        rpc_error: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            rpc_error=rpc_error,
            code=ErrorCode.RPC_CONNECTION_ERROR
        )


class RpcHttpError(RpcError):
    """Exception for non-2xx responses from the RPC provider."""

    def __init__(self, message: str, http_status: int):
        super().__init__(message=message, code=ErrorCode.RPC_HTTP_ERROR)
        self.details["status_code"] = http_status
        self.http_status = http_status


class ExternalServiceError(SivicError):
    """Exception for errors from external REST services."""

    error = "External service error"

    def __init__(
        self,
        message: str,
        service_name: str,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        error_details["service_name"] = service_name

        super().__init__(
            message=message,
            code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=error_details
        )
