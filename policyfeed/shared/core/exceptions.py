from typing import Any, Dict, Optional


class PolicyFeedException(Exception):
    """Base exception for all policyfeed errors."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(PolicyFeedException):
    """Raised when client configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        code: str = "config_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)


class ExternalAPIError(PolicyFeedException):
    """Raised when the policy API cannot be reached or answers with a bad envelope."""

    def __init__(
        self,
        message: str,
        code: str = "external_api_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)


class GraphQLResponseError(ExternalAPIError):
    """Raised when a response envelope carries an `errors` field."""

    def __init__(self, message: str, errors: str):
        super().__init__(message, code="graphql_error", details={"errors": errors})
        self.errors = errors


class ResponseDecodeError(ExternalAPIError):
    """Raised when a response payload cannot be decoded into the expected shape."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="decode_error", details=details)


class ProgressWriteError(PolicyFeedException):
    """Raised when a progress line cannot be written to the output stream."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="progress_write_error", details=details)
