"""
Document repository for the vault client library.

This module provides the CRUD, upload and download operations against the
backend's ``/documents`` endpoints. Every response is normalized into
``DocumentRecord`` and every failure into a ``VaultError`` subclass.
"""

import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, Union
from urllib.parse import quote, unquote

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    AuthenticationRequiredError,
    TransportFailureError,
    ValidationError,
)
from .models import Category, DocumentRecord, DownloadedFile, UploadCandidate
from .transport import VaultTransport
from .utils import normalize_doc_id, retry_with_backoff, timing_context

T = TypeVar('T')

LIST_FAILED = "Failed to fetch documents"
GET_FAILED = "Failed to fetch document"
UPLOAD_FAILED = "Failed to upload document"
UPDATE_FAILED = "Failed to update document"
DELETE_FAILED = "Failed to delete document"
DOWNLOAD_FAILED = "Download failed"
DOWNLOAD_FORBIDDEN = "You don't have permission to download this file"
DOWNLOAD_NEEDS_LOGIN = "Please login to download files"

_FILENAME_EXT = re.compile(r"filename\*\s*=\s*([\w!#$&+.^`|~-]*)'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME = re.compile(r'filename\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;]+))', re.IGNORECASE)

# Paged responses wrap the items in one of these keys
_LIST_KEYS = ("content", "documents", "items")


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """
    Extract the file name from a Content-Disposition header.

    ``filename*`` (RFC 5987) wins over plain ``filename``.

    Args:
        header: Raw header value

    Returns:
        File name, or None if the header carries none
    """
    if not header:
        return None

    match = _FILENAME_EXT.search(header)
    if match:
        charset = match.group(1) or "utf-8"
        try:
            name = unquote(match.group(2).strip().strip('"'), encoding=charset)
        except LookupError:
            name = unquote(match.group(2).strip().strip('"'))
        if name:
            return name

    match = _FILENAME.search(header)
    if match:
        if match.group(1) is not None:
            name = re.sub(r'\\(.)', r'\1', match.group(1))
        else:
            name = match.group(2).strip()
        return name or None
    return None


def resolve_download_name(content_disposition: Optional[str], suggested_name: Optional[str], doc_id: str) -> str:
    """Header name first, then the caller's suggestion, then ``document-<id>``."""
    return parse_content_disposition(content_disposition) or suggested_name or f"document-{doc_id}"


def _require_id(doc_id: Any) -> str:
    normalized = normalize_doc_id(doc_id)
    if normalized is None:
        raise ValidationError("Document ID is required", field="id")
    return normalized


def _form_fields(file: Optional[UploadCandidate], fields: Dict[str, str]) -> List[Tuple[str, Any]]:
    """Build multipart parts; plain fields get no filename so they stay form values."""
    parts: List[Tuple[str, Any]] = []
    if file is not None:
        parts.append(("file", (file.name, file.content, file.content_type or "application/octet-stream")))
    for name, value in fields.items():
        parts.append((name, (None, value)))
    return parts


class DocumentRepository:
    """
    Backend operations on documents.

    Reads (listing, fetching, downloading) are retried on transport failure;
    mutations are sent exactly once.
    """

    def __init__(self, transport: VaultTransport, read_retry_attempts: int = 3,
                 retry_base_delay: float = 0.5):
        self.transport = transport
        self.read_retry_attempts = read_retry_attempts
        self.retry_base_delay = retry_base_delay

    @property
    def session(self):
        return self.transport.session

    async def _read(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        return await retry_with_backoff(
            operation,
            func,
            max_attempts=self.read_retry_attempts,
            base_delay=self.retry_base_delay,
            exceptions=(TransportFailureError,),
        )

    def _normalize_one(self, payload: Any, operation: str, fallback: str) -> DocumentRecord:
        if not isinstance(payload, dict):
            logger.error(f"{operation}: expected a document object, got {type(payload).__name__}")
            raise TransportFailureError(fallback, operation=operation)
        try:
            return DocumentRecord.from_payload(payload)
        except PydanticValidationError as e:
            logger.error(f"{operation}: malformed document in response: {str(e)}")
            raise TransportFailureError(fallback, operation=operation) from e

    def _normalize_many(self, payload: Any, operation: str, fallback: str) -> List[DocumentRecord]:
        if isinstance(payload, dict):
            payload = next((payload[k] for k in _LIST_KEYS if isinstance(payload.get(k), list)), None)
        if not isinstance(payload, list):
            logger.error(f"{operation}: expected a list of documents")
            raise TransportFailureError(fallback, operation=operation)

        records = []
        for item in payload:
            try:
                records.append(self._normalize_one(item, operation, fallback))
            except TransportFailureError:
                # One bad row must not hide the rest of the library
                logger.warning(f"{operation}: skipping malformed document entry")
        return records

    # ==========================================
    # Reads
    # ==========================================

    async def list_documents(self) -> List[DocumentRecord]:
        """
        Fetch every document visible to the current session.

        Returns:
            List of normalized records, in server order
        """
        async def fetch():
            return await self.transport.request_json(
                "GET", "/documents", operation="list_documents", fallback_message=LIST_FAILED
            )

        with timing_context("list_documents"):
            payload = await self._read("list_documents", fetch)
            records = self._normalize_many(payload, "list_documents", LIST_FAILED)
            logger.info(f"Fetched {len(records)} documents")
            return records

    async def list_by_category(self, category: Union[Category, str]) -> List[DocumentRecord]:
        """Fetch the documents in one category."""
        category_value = Category.parse(category).value

        async def fetch():
            return await self.transport.request_json(
                "GET", f"/documents/category/{quote(category_value, safe='')}",
                operation="list_by_category", fallback_message=LIST_FAILED,
            )

        with timing_context(f"list_by_category(category={category_value})"):
            payload = await self._read("list_by_category", fetch)
            return self._normalize_many(payload, "list_by_category", LIST_FAILED)

    async def get_document(self, doc_id: Any) -> DocumentRecord:
        """Fetch one document's metadata."""
        doc_id = _require_id(doc_id)

        async def fetch():
            return await self.transport.request_json(
                "GET", f"/documents/{quote(doc_id, safe='')}",
                operation="get_document", fallback_message=GET_FAILED, doc_id=doc_id,
            )

        with timing_context(f"get_document(doc_id={doc_id})"):
            payload = await self._read("get_document", fetch)
            return self._normalize_one(payload, "get_document", GET_FAILED)

    # ==========================================
    # Mutations
    # ==========================================

    async def upload(self, file: Optional[UploadCandidate], category: Union[Category, str, None],
                     display_name: Optional[str] = None) -> DocumentRecord:
        """
        Upload a new document.

        The file and category are re-checked here even if the caller ran
        UploadValidator, since uploads can be issued from several places.

        Args:
            file: File to upload
            category: Document category
            display_name: Name to store; defaults to the file's own name

        Returns:
            The server's record for the new document

        Raises:
            ValidationError: If the file or category is missing
            RequestError: If the backend rejects the upload
        """
        if file is None:
            raise ValidationError("File is required", field="file")
        if category is None or not str(getattr(category, "value", category)).strip():
            raise ValidationError("Category is required", field="category")

        file_name = (display_name or "").strip() or file.name
        fields = {"category": Category.parse(category).value, "filename": file_name}

        with timing_context(f"upload(file={file.name})"):
            payload = await self.transport.request_json(
                "POST", "/documents/upload",
                operation="upload", fallback_message=UPLOAD_FAILED,
                files=_form_fields(file, fields),
            )
            record = self._normalize_one(payload, "upload", UPLOAD_FAILED)
            logger.info(f"Uploaded document {record.id} ({record.file_name})")
            return record

    async def update(self, doc_id: Any, file: Optional[UploadCandidate] = None,
                     category: Union[Category, str, None] = None,
                     display_name: Optional[str] = None) -> DocumentRecord:
        """
        Partially update a document.

        Only the supplied fields are sent, so a metadata-only edit never
        re-sends the file.

        Raises:
            ValidationError: If the id is missing or nothing would change
            RequestError: If the backend rejects the update
        """
        doc_id = _require_id(doc_id)

        fields: Dict[str, str] = {}
        if category is not None and str(getattr(category, "value", category)).strip():
            fields["category"] = Category.parse(category).value
        if display_name is not None and display_name.strip():
            fields["filename"] = display_name.strip()
        if file is None and not fields:
            raise ValidationError("Nothing to update", field="id", value=doc_id)

        with timing_context(f"update(doc_id={doc_id})"):
            payload = await self.transport.request_json(
                "PUT", f"/documents/{quote(doc_id, safe='')}",
                operation="update", fallback_message=UPDATE_FAILED, doc_id=doc_id,
                files=_form_fields(file, fields),
            )
            record = self._normalize_one(payload, "update", UPDATE_FAILED)
            logger.info(f"Updated document {doc_id}")
            return record

    async def delete(self, doc_id: Any) -> None:
        """Delete a document."""
        doc_id = _require_id(doc_id)

        with timing_context(f"delete(doc_id={doc_id})"):
            await self.transport.request(
                "DELETE", f"/documents/{quote(doc_id, safe='')}",
                operation="delete", fallback_message=DELETE_FAILED, doc_id=doc_id,
            )
            logger.info(f"Deleted document {doc_id}")

    # ==========================================
    # Download
    # ==========================================

    async def download(self, doc_id: Any, suggested_name: Optional[str] = None) -> DownloadedFile:
        """
        Fetch a document's binary content.

        Args:
            doc_id: Document ID
            suggested_name: Name to use when the server sends none

        Returns:
            DownloadedFile with payload, content type and resolved name

        Raises:
            AuthenticationRequiredError: If there is no session (no request is sent)
            RequestError: If the backend refuses or fails
        """
        doc_id = _require_id(doc_id)

        if not self.session.is_authenticated:
            self.session.on_authentication_failure()
            raise AuthenticationRequiredError(DOWNLOAD_NEEDS_LOGIN, operation="download", doc_id=doc_id)

        async def fetch():
            return await self.transport.request(
                "GET", f"/documents/download/{quote(doc_id, safe='')}",
                operation="download", fallback_message=DOWNLOAD_FAILED, doc_id=doc_id,
                status_messages={403: DOWNLOAD_FORBIDDEN},
            )

        with timing_context(f"download(doc_id={doc_id})"):
            response = await self._read("download", fetch)
            file_name = resolve_download_name(
                response.headers.get("content-disposition"), suggested_name, doc_id
            )
            return DownloadedFile(
                content=response.content,
                file_name=file_name,
                content_type=response.headers.get("content-type"),
            )
