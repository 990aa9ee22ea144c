"""
Infolock - Personal Document Vault Client

An async client for the Infolock document vault backend: session handling,
document upload/download, and a consistent local view of the library.

Components:
- vault: session, repository, document store and download handling
- Infolock: orchestrator that wires them together
"""

from .vault.document_store import DocumentStore
from .vault.models import Category, DocumentRecord, UploadCandidate
from .vault.config import VaultConfig, get_config

from .infolock import Infolock

__version__ = "0.1.0"

__all__ = [
    # Main orchestrator
    "Infolock",

    # Vault components
    "DocumentStore",
    "DocumentRecord",
    "UploadCandidate",
    "Category",
    "VaultConfig",
    "get_config",
]
