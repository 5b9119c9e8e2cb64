"""
Error Definitions

Defines the exception hierarchy raised by the translation layer. Every error
carries the HTTP status code it is reported with; the FastAPI exception
handlers in main.py are the only place these are turned into responses.
"""

from typing import Any, Optional


class AppError(Exception):
    """
    Application Base Exception

    Base class for all custom exceptions, containing error message, type, and code.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "app_error",
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        """
        Initialize exception

        Args:
            message: Error message
            error_type: Error type
            code: Error code
            details: Extra error details
            status_code: HTTP status code
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Args:
            include_details: Whether to include the details mapping

        Returns:
            dict: Error information dictionary
        """
        result = {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }
        if include_details and self.details:
            result["error"]["details"] = self.details
        return result


class ValidationError(AppError):
    """
    Request Validation Error

    Raised when a required request field is missing or malformed, an enum value
    is unknown, function-call arguments are not valid JSON, or a tool result
    references a tool_call_id that cannot be matched.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = "invalid_request",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="invalid_request_error",
            code=code,
            details=details,
            status_code=400,
        )


class MediaFetchError(ValidationError):
    """
    Raised when a remote image referenced by a message cannot be fetched.
    """

    def __init__(
        self,
        message: str = "Error fetching image",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="media_fetch_failed", details=details)


class UpstreamError(AppError):
    """
    Upstream Service Error

    Raised when the upstream answered successfully but its payload cannot be used
    (e.g. a speech response without audio data). Non-2xx upstream replies are
    passed through verbatim instead.
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        code: str = "upstream_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(
            message=message,
            error_type="upstream_error",
            code=code,
            details=details,
            status_code=status_code,
        )
