"""
Base Exception Class

Only the project base exception lives here. Specialized exceptions are in
their themed modules.
"""

from typing import Any


class TelehealthCacheError(Exception):
    """
    Base exception for all errors raised by the caching layer.

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise BackendTransientError(
            "Profile fetch timed out",
            request_id="abc-123",
            details={"table": "profiles", "user_id": "u1"}
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "TelehealthCacheError":
        """Add a hint for resolving the error. Returns self for chaining."""
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "TelehealthCacheError":
        """Add key/value context to the error details. Returns self for chaining."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "TelehealthCacheError":
        """
        Wrap a third-party exception, keeping its type and message in details.

        Example:
            >>> try:
            ...     await client.get("/rest/v1/profiles")
            ... except httpx.ConnectError as e:
            ...     raise BackendTransientError.from_exception(e, table="profiles")
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(TelehealthCacheError):
    """Raised when configuration is invalid or missing."""
    pass
