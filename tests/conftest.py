import asyncio
import json
import re
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from infolock.vault.config import VaultConfig
from infolock.vault.document_store import DocumentStore
from infolock.vault.repository import DocumentRepository
from infolock.vault.session import SessionManager, reset_session_manager
from infolock.vault.transport import VaultTransport, new_async_client

BASE_URL = "http://vault.test/api"
TOKEN = "abc"

_DISPOSITION_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_multipart(request: httpx.Request) -> Dict[str, Tuple[Optional[str], bytes]]:
    """Split a multipart body into {field: (filename, data)}."""
    boundary = request.headers["content-type"].split("boundary=")[1].strip('"').encode()
    fields = {}
    for part in request.content.split(b"--" + boundary)[1:-1]:
        headers, _, data = part[2:-2].partition(b"\r\n\r\n")
        params = dict(_DISPOSITION_PARAM.findall(headers.decode()))
        fields[params["name"]] = (params.get("filename"), data)
    return fields


def _json(status: int, body) -> httpx.Response:
    return httpx.Response(status, json=body)


class FakeBackend:
    """In-memory stand-in for the vault REST API."""

    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.contents: Dict[str, bytes] = {}
        self.tokens = {TOKEN}
        self.users = {"me@example.com": "secret"}
        self.requests: List[httpx.Request] = []
        self.gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self.failures: Dict[Tuple[str, str], List[object]] = {}
        self.send_disposition = True
        self._next_id = 1

    def add_document(self, file_name: str, category: str = "Personal", content: bytes = b"data",
                     file_type: str = "application/pdf", tags=None) -> str:
        doc_id = self._next_id
        self._next_id += 1
        doc = {
            "id": doc_id,
            "fileName": file_name,
            "fileType": file_type,
            "category": category,
            "fileSize": len(content),
            "uploadDate": "2024-03-04T10:00:00",
        }
        if tags is not None:
            doc["tags"] = tags
        self.documents[str(doc_id)] = doc
        self.contents[str(doc_id)] = content
        return str(doc_id)

    def fail(self, method: str, path: str, *outcomes) -> None:
        """Queue responses or exceptions for the next requests to ``path``."""
        self.failures.setdefault((method, path), []).extend(outcomes)

    def gate(self, method: str, path: str) -> asyncio.Event:
        """Hold the next request to ``path`` until the returned event is set."""
        event = asyncio.Event()
        self.gates[(method, path)] = event
        return event

    def auth_headers(self) -> List[Optional[str]]:
        return [r.headers.get("authorization") for r in self.requests]

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path[len("/api"):]

        # The reply is decided on arrival; a gate only delays its delivery
        queued = self.failures.get((method, path))
        outcome = queued.pop(0) if queued else None

        gate = self.gates.pop((method, path), None)
        if gate is not None:
            await gate.wait()

        if outcome is not None:
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        if path.startswith("/auth/"):
            return self._auth(path, json.loads(request.content or b"{}"))

        header = request.headers.get("authorization", "")
        if not header.startswith("Bearer ") or header[len("Bearer "):] not in self.tokens:
            return _json(401, {"message": "Full authentication is required"})

        return self._documents(method, path, request)

    def _auth(self, path: str, body: dict) -> httpx.Response:
        if path == "/auth/login":
            if self.users.get(body.get("email")) != body.get("password"):
                return _json(401, {"error": "Invalid email or password"})
            token = f"token-{len(self.tokens)}"
            self.tokens.add(token)
            return _json(200, {"token": token})
        if path == "/auth/register":
            if body["email"] in self.users:
                return _json(400, {"error": "Email already in use"})
            self.users[body["email"]] = body["password"]
            return _json(200, {"message": "User registered successfully"})
        return _json(404, {"error": "Not Found"})

    def _documents(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        if method == "GET" and path == "/documents":
            return _json(200, list(self.documents.values()))

        if method == "POST" and path == "/documents/upload":
            fields = parse_multipart(request)
            file_name, content = fields["file"]
            doc_id = self.add_document(
                fields["filename"][1].decode(),
                category=fields["category"][1].decode(),
                content=content,
                file_type=request_part_type(request, "file"),
            )
            del self.documents[doc_id]["uploadDate"]
            return _json(200, self.documents[doc_id])

        match = re.fullmatch(r"/documents/category/(.+)", path)
        if method == "GET" and match:
            wanted = match.group(1)
            return _json(200, [d for d in self.documents.values() if d["category"] == wanted])

        match = re.fullmatch(r"/documents/download/(.+)", path)
        if method == "GET" and match:
            doc = self.documents.get(match.group(1))
            if doc is None:
                return _json(404, {"message": f"Document not found with id: {match.group(1)}"})
            headers = {"content-type": doc["fileType"]}
            if self.send_disposition:
                headers["content-disposition"] = f'attachment; filename="{doc["fileName"]}"'
            return httpx.Response(200, content=self.contents[match.group(1)], headers=headers)

        match = re.fullmatch(r"/documents/([^/]+)", path)
        if match:
            doc_id = match.group(1)
            doc = self.documents.get(doc_id)
            if doc is None:
                return _json(404, {"message": f"Document not found with id: {doc_id}"})
            if method == "GET":
                return _json(200, doc)
            if method == "DELETE":
                del self.documents[doc_id]
                return httpx.Response(204)
            if method == "PUT":
                fields = parse_multipart(request)
                if "category" in fields:
                    doc["category"] = fields["category"][1].decode()
                if "filename" in fields:
                    doc["fileName"] = fields["filename"][1].decode()
                if "file" in fields:
                    self.contents[doc_id] = fields["file"][1]
                    doc["fileSize"] = len(fields["file"][1])
                    doc["fileType"] = request_part_type(request, "file")
                return _json(200, doc)

        return _json(405, {"error": "Method Not Allowed"})


def request_part_type(request: httpx.Request, field: str) -> Optional[str]:
    """Content-Type header of one multipart part."""
    boundary = request.headers["content-type"].split("boundary=")[1].strip('"').encode()
    for part in request.content.split(b"--" + boundary)[1:-1]:
        headers = part[2:-2].partition(b"\r\n\r\n")[0].decode()
        if f'name="{field}"' in headers:
            match = re.search(r"Content-Type: (\S+)", headers)
            return match.group(1) if match else None
    return None


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    for key in ("INFOLOCK_API_TOKEN", "INFOLOCK_API_BASE_URL", "INFOLOCK_DOWNLOAD_DIR"):
        monkeypatch.delenv(key, raising=False)
    reset_session_manager()
    yield
    reset_session_manager()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config(tmp_path):
    return VaultConfig(
        _env_file=None,
        api_base_url=BASE_URL,
        download_dir=tmp_path / "downloads",
        read_retry_attempts=2,
        retry_base_delay_seconds=0,
        environment="test",
    )


@pytest.fixture
def session():
    return SessionManager(token=TOKEN)


@pytest_asyncio.fixture
async def transport(backend, session, config):
    client = new_async_client(config, httpx.MockTransport(backend.handler))
    transport = VaultTransport(client, session)
    yield transport
    await transport.aclose()


@pytest.fixture
def repository(transport, config):
    return DocumentRepository(
        transport,
        read_retry_attempts=config.read_retry_attempts,
        retry_base_delay=config.retry_base_delay_seconds,
    )


@pytest.fixture
def store(repository):
    return DocumentStore(repository)


@pytest.fixture
def wait_for():
    """Yield to the event loop until ``predicate`` holds."""

    async def _wait_for(predicate, rounds: int = 200):
        for _ in range(rounds):
            if predicate():
                return
            await asyncio.sleep(0)
        raise AssertionError("condition not reached")

    return _wait_for
