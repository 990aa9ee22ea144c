"""
Custom exceptions for the vault client library.

Every failure a caller can see is one of these. Transport and server
failures are normalized into them at the HTTP boundary, so raw httpx
exceptions never leave the library.
"""

from typing import Optional, Dict, Any


class VaultError(Exception):
    """Base exception for all vault client errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} (Details: {details_str})"
        return self.message


class ConfigurationError(VaultError):
    """Raised when there are configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.config_key = config_key
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)


class ValidationError(VaultError):
    """Raised when a request fails client-side checks before it is sent."""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, details)


class FileTooLargeError(ValidationError):
    """Raised when a candidate upload exceeds the size limit."""
    pass


class UnsupportedTypeError(ValidationError):
    """Raised when a candidate upload has a MIME type that is not allowed."""
    pass


class RequestError(VaultError):
    """Base exception for errors that originate from a backend request."""

    def __init__(self, message: str, operation: Optional[str] = None, status_code: Optional[int] = None,
                 doc_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        self.status_code = status_code
        self.doc_id = doc_id
        details = details or {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        if doc_id:
            details["doc_id"] = doc_id
        super().__init__(message, details)

    def __str__(self) -> str:
        # Shown to users as-is; the details are for logs.
        return self.message


class AuthenticationRequiredError(RequestError):
    """Raised when there is no session or the backend rejected the credential."""
    pass


class DocumentNotFoundError(RequestError):
    """Raised when the backend reports that a document id does not exist."""
    pass


class PermissionDeniedError(RequestError):
    """Raised when the backend forbids the operation."""
    pass


class TransportFailureError(RequestError):
    """Raised when the backend is unreachable or returned a malformed response."""
    pass


class ServerError(RequestError):
    """Raised when the backend answers with an error payload."""
    pass
