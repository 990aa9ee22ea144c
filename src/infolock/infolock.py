"""
Infolock - Personal Document Vault Client

Wires the vault components together for an embedding UI or CLI:

1. Authenticate (login / register / logout)
2. Load and search the document library
3. Upload, edit and delete documents
4. Download documents into the local download directory
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from loguru import logger

from .vault.auth import AuthAPI
from .vault.config import VaultConfig, get_config
from .vault.document_store import DocumentStore
from .vault.download import DownloadHandler
from .vault.formatting import format_file_size, format_file_type, format_upload_date
from .vault.models import Category, DocumentRecord, UploadCandidate
from .vault.repository import DocumentRepository
from .vault.session import SessionManager, get_session_manager
from .vault.transport import VaultTransport, new_async_client
from .vault.validation import UploadValidator


class Infolock:
    """
    Personal document vault client.

    Use as an async context manager so the HTTP client is closed::

        async with Infolock() as vault:
            await vault.login("me@example.com", "secret")
            await vault.refresh()
    """

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        session: Optional[SessionManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Infolock.

        Args:
            config: Settings (defaults to the global config)
            session: Session manager (defaults to the process-wide one)
            transport: Optional httpx transport override
        """
        self.config = config or get_config()
        self.session = session or get_session_manager()
        if self.config.api_token and not self.session.is_authenticated:
            self.session.set_credential(self.config.api_token)

        self.transport = VaultTransport(new_async_client(self.config, transport), self.session)
        self.auth = AuthAPI(self.transport)
        self.repository = DocumentRepository(
            self.transport,
            read_retry_attempts=self.config.read_retry_attempts,
            retry_base_delay=self.config.retry_base_delay_seconds,
        )
        self.store = DocumentStore(self.repository)
        self.validator = UploadValidator(max_bytes=self.config.max_upload_bytes)
        self.downloads = DownloadHandler(self.config.download_dir)

        self.session.add_login_listener(self._forget_documents)
        logger.info(f"Infolock initialized for {self.config.api_base_url}")

    async def __aenter__(self) -> 'Infolock':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.session.remove_login_listener(self._forget_documents)
        await self.transport.aclose()

    def _forget_documents(self) -> None:
        # The previous user's library must not outlive their session
        self.store.replace_all([])

    # ==========================================
    # Authentication
    # ==========================================

    async def login(self, email: str, password: str) -> str:
        return await self.auth.login(email, password)

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        return await self.auth.register(username, email, password)

    def logout(self) -> None:
        self.auth.logout()
        self._forget_documents()

    # ==========================================
    # Library
    # ==========================================

    async def refresh(self) -> List[DocumentRecord]:
        return await self.store.refresh()

    def search(self, term: Optional[str]) -> List[DocumentRecord]:
        self.store.set_search_term(term)
        return self.store.filtered()

    async def upload_file(
        self,
        file: Union[UploadCandidate, str, Path],
        category: Union[Category, str] = Category.PERSONAL,
        name: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Validate and upload a file.

        Args:
            file: An UploadCandidate or a path to read one from
            category: Document category
            name: Display name (defaults to the file name)

        Returns:
            The confirmed record, already prepended to the store
        """
        candidate = file if isinstance(file, UploadCandidate) else UploadCandidate.from_path(file)
        self.validator.validate(candidate)
        return await self.store.upload(candidate, category, name)

    async def edit(
        self,
        doc_id: Any,
        category: Union[Category, str, None] = None,
        name: Optional[str] = None,
        file: Union[UploadCandidate, str, Path, None] = None,
    ) -> Optional[DocumentRecord]:
        """Edit metadata and optionally replace the file."""
        candidate = None
        if file is not None:
            candidate = file if isinstance(file, UploadCandidate) else UploadCandidate.from_path(file)
            self.validator.validate(candidate)
        return await self.store.update(doc_id, file=candidate, category=category, display_name=name)

    async def delete(self, doc_id: Any) -> bool:
        return await self.store.delete(doc_id)

    async def download(self, doc_id: Any, suggested_name: Optional[str] = None) -> Path:
        """
        Download a document into the configured download directory.

        Returns:
            Path of the saved file
        """
        if suggested_name is None:
            known = self.store.get(doc_id)
            suggested_name = known.file_name if known else None

        downloaded = await self.repository.download(doc_id, suggested_name)
        return self.downloads.save(downloaded.content, downloaded.content_type, downloaded.file_name)

    @staticmethod
    def describe(record: DocumentRecord) -> Dict[str, str]:
        """Display strings for one document card."""
        return {
            "id": record.id,
            "name": record.file_name,
            "type": format_file_type(record.file_type),
            "category": record.category.value,
            "size": format_file_size(record.file_size),
            "uploaded": format_upload_date(record.upload_date),
            "tags": ", ".join(record.tags),
        }
