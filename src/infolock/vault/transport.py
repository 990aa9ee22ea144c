"""
HTTP transport for the vault client library.

This module owns the single shared ``httpx.AsyncClient``. Every request is
built here, gets the session credential attached at send time, and every
failure is normalized into one ``RequestError`` subclass carrying a
user-presentable message. Raw transport detail goes to the log only.
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from .config import VaultConfig
from .exceptions import (
    RequestError,
    AuthenticationRequiredError,
    DocumentNotFoundError,
    PermissionDeniedError,
    TransportFailureError,
    ServerError,
)
from .session import SessionManager

# Keys a backend error body may carry a readable message under, in order
_MESSAGE_KEYS = ("message", "error", "detail")


def new_async_client(config: VaultConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Create the async HTTP client for the configured backend.

    Args:
        config: VaultConfig instance
        transport: Optional transport override (tests use httpx.MockTransport)

    Returns:
        httpx.AsyncClient
    """
    return httpx.AsyncClient(
        base_url=config.api_base_url,
        timeout=httpx.Timeout(config.request_timeout_seconds),
        transport=transport,
    )


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """Pull a human-readable message out of a structured error body."""
    try:
        body = response.json()
    except ValueError:
        return None

    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None

    for key in _MESSAGE_KEYS:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class VaultTransport:
    """Sends requests to the backend on behalf of the repository and auth API."""

    def __init__(self, client: httpx.AsyncClient, session: SessionManager):
        self.client = client
        self.session = session

    async def request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        fallback_message: str,
        doc_id: Optional[str] = None,
        status_messages: Optional[Dict[int, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request and return the successful response.

        Args:
            method: HTTP method
            path: Path relative to the configured base URL
            operation: Operation name for logs and error details
            fallback_message: Message used when the server gives none
            doc_id: Document id the request targets, if any
            status_messages: Fixed messages for specific status codes
            **kwargs: Passed to ``httpx.AsyncClient.build_request``

        Returns:
            httpx.Response with a 2xx status

        Raises:
            RequestError: Normalized failure (see exceptions module)
        """
        request = self.client.build_request(method, path, **kwargs)
        self.session.attach(request)

        try:
            response = await self.client.send(request)
        except httpx.HTTPError as e:
            logger.error(f"{operation}: transport failure on {method} {path}: {e!r}")
            raise TransportFailureError(fallback_message, operation=operation, doc_id=doc_id) from e

        if response.is_success:
            return response

        error = self._error_for(response, operation, fallback_message, doc_id, status_messages or {})
        logger.error(
            f"{operation}: {method} {path} returned {response.status_code}: {response.text[:500]!r}"
        )
        if isinstance(error, AuthenticationRequiredError):
            self.session.on_authentication_failure()
        raise error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body."""
        response = await self.request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            operation = kwargs.get("operation")
            logger.error(f"{operation}: malformed JSON from {method} {path}: {str(e)}")
            raise TransportFailureError(
                kwargs["fallback_message"], operation=operation, doc_id=kwargs.get("doc_id")
            ) from e

    def _error_for(
        self,
        response: httpx.Response,
        operation: str,
        fallback_message: str,
        doc_id: Optional[str],
        status_messages: Dict[int, str],
    ) -> RequestError:
        status = response.status_code
        message = status_messages.get(status) or extract_error_message(response) or fallback_message

        if status == 401:
            error_class = AuthenticationRequiredError
        elif status == 403:
            error_class = PermissionDeniedError
        elif status == 404:
            error_class = DocumentNotFoundError
        else:
            error_class = ServerError

        return error_class(message, operation=operation, status_code=status, doc_id=doc_id)

    async def aclose(self) -> None:
        await self.client.aclose()
