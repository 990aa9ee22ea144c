"""
Vault - document client and session layer.

Turns the vault's REST backend into a consistent client-side view of a
document collection.

Usage:
    from infolock.vault import DocumentStore, DocumentRepository

    store = DocumentStore(repository)
    await store.refresh()
    store.set_search_term("invoice")
    matches = store.filtered()
"""

from .document_store import DocumentStore
from .repository import DocumentRepository, parse_content_disposition, resolve_download_name
from .session import SessionManager, get_session_manager
from .transport import VaultTransport, new_async_client
from .auth import AuthAPI
from .download import DownloadHandler
from .validation import UploadValidator, ALLOWED_MIME_TYPES
from .models import Category, DocumentRecord, DownloadedFile, UploadCandidate
from .operations import GenerationTracker, PendingOperation
from .formatting import format_file_size, format_file_type, format_upload_date

from .config import VaultConfig, get_config, load_config, set_config
from .exceptions import (
    VaultError,
    ConfigurationError,
    ValidationError,
    FileTooLargeError,
    UnsupportedTypeError,
    RequestError,
    AuthenticationRequiredError,
    DocumentNotFoundError,
    PermissionDeniedError,
    TransportFailureError,
    ServerError,
)

__all__ = [
    # Main API Classes
    "DocumentStore",
    "DocumentRepository",
    "SessionManager",
    "VaultTransport",
    "AuthAPI",
    "DownloadHandler",
    "UploadValidator",
    "GenerationTracker",
    "PendingOperation",

    # Models
    "Category",
    "DocumentRecord",
    "DownloadedFile",
    "UploadCandidate",
    "ALLOWED_MIME_TYPES",

    # Factory Functions
    "get_session_manager",
    "new_async_client",

    # Formatting
    "format_file_size",
    "format_file_type",
    "format_upload_date",
    "parse_content_disposition",
    "resolve_download_name",

    # Configuration
    "VaultConfig",
    "get_config",
    "load_config",
    "set_config",

    # Exceptions
    "VaultError",
    "ConfigurationError",
    "ValidationError",
    "FileTooLargeError",
    "UnsupportedTypeError",
    "RequestError",
    "AuthenticationRequiredError",
    "DocumentNotFoundError",
    "PermissionDeniedError",
    "TransportFailureError",
    "ServerError",
]
