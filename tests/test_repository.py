import httpx
import pytest

from conftest import parse_multipart
from infolock.vault.exceptions import (
    AuthenticationRequiredError,
    DocumentNotFoundError,
    PermissionDeniedError,
    TransportFailureError,
    ValidationError,
)
from infolock.vault.models import Category, UploadCandidate
from infolock.vault.repository import parse_content_disposition, resolve_download_name

PDF = UploadCandidate(name="Invoice.pdf", content=b"%PDF-1.7", content_type="application/pdf")


@pytest.mark.parametrize("header,expected", [
    ('attachment; filename="report.pdf"', "report.pdf"),
    ("attachment; filename=report.pdf", "report.pdf"),
    ('attachment; filename="a \\"b\\".pdf"', 'a "b".pdf'),
    ("attachment; filename=\"fallback.pdf\"; filename*=UTF-8''na%C3%AFve.pdf", "naïve.pdf"),
    ("attachment", None),
    (None, None),
])
def test_parse_content_disposition(header, expected):
    assert parse_content_disposition(header) == expected


def test_resolve_download_name_precedence():
    assert resolve_download_name('attachment; filename="report.pdf"', "mine.pdf", "5") == "report.pdf"
    assert resolve_download_name("attachment", "mine.pdf", "5") == "mine.pdf"
    assert resolve_download_name(None, None, "5") == "document-5"


@pytest.mark.asyncio
async def test_upload_then_list_round_trip(repository, backend):
    record = await repository.upload(PDF, Category.FINANCIAL)

    listed = await repository.list_documents()

    assert [r.id for r in listed] == [record.id]
    assert listed[0].file_name == "Invoice.pdf"
    assert listed[0].category is Category.FINANCIAL
    assert listed[0].file_type == "application/pdf"
    assert listed[0].file_size == len(PDF.content)


@pytest.mark.asyncio
async def test_upload_sends_display_name(repository, backend):
    await repository.upload(PDF, "legal", display_name="  Contract  ")

    fields = parse_multipart(backend.requests_to("POST", "/documents/upload")[0])
    assert fields["file"] == ("Invoice.pdf", PDF.content)
    assert fields["filename"] == (None, b"Contract")
    assert fields["category"] == (None, b"Legal")


@pytest.mark.asyncio
async def test_upload_requires_file_and_category(repository, backend):
    with pytest.raises(ValidationError):
        await repository.upload(None, Category.PERSONAL)
    with pytest.raises(ValidationError):
        await repository.upload(PDF, "")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_mutations_are_not_retried(repository, backend):
    backend.fail("POST", "/documents/upload", httpx.ConnectError("reset"))

    with pytest.raises(TransportFailureError, match="Failed to upload document"):
        await repository.upload(PDF, Category.PERSONAL)

    assert len(backend.requests_to("POST", "/documents/upload")) == 1


@pytest.mark.asyncio
async def test_reads_are_retried(repository, backend):
    backend.add_document("a.pdf")
    backend.fail("GET", "/documents", httpx.ConnectError("reset"))

    records = await repository.list_documents()

    assert len(records) == 1
    assert len(backend.requests_to("GET", "/documents")) == 2


@pytest.mark.asyncio
async def test_reads_give_up_after_configured_attempts(repository, backend):
    backend.fail("GET", "/documents", httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow"))

    with pytest.raises(TransportFailureError, match="Failed to fetch documents"):
        await repository.list_documents()


@pytest.mark.asyncio
async def test_list_accepts_paged_payload_and_skips_bad_rows(repository, backend):
    backend.fail("GET", "/documents", httpx.Response(200, json={
        "content": [{"id": 1, "name": "old.pdf"}, "garbage", {"fileName": "no-id.pdf"}],
        "totalElements": 3,
    }))

    records = await repository.list_documents()

    assert [(r.id, r.file_name) for r in records] == [("1", "old.pdf")]


@pytest.mark.asyncio
async def test_list_rejects_non_list_payload(repository, backend):
    backend.fail("GET", "/documents", httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(TransportFailureError):
        await repository.list_documents()
    assert len(backend.requests_to("GET", "/documents")) == 1


@pytest.mark.asyncio
async def test_list_by_category_and_get(repository, backend):
    backend.add_document("a.pdf", category="Medical")
    doc_id = backend.add_document("b.pdf", category="Legal")

    medical = await repository.list_by_category("medical")
    record = await repository.get_document(int(doc_id))

    assert [r.file_name for r in medical] == ["a.pdf"]
    assert record.id == doc_id
    assert record.file_name == "b.pdf"


@pytest.mark.asyncio
async def test_update_sends_only_supplied_fields(repository, backend):
    doc_id = backend.add_document("a.pdf")

    record = await repository.update(doc_id, category="Medical")

    fields = parse_multipart(backend.requests_to("PUT", f"/documents/{doc_id}")[0])
    assert set(fields) == {"category"}
    assert record.category is Category.MEDICAL
    assert record.file_name == "a.pdf"


@pytest.mark.asyncio
async def test_update_with_replacement_file(repository, backend):
    doc_id = backend.add_document("a.pdf")
    scan = UploadCandidate(name="scan.png", content=b"\x89PNG....", content_type="image/png")

    record = await repository.update(doc_id, file=scan, display_name="Scan")

    assert record.file_name == "Scan"
    assert record.file_type == "image/png"
    assert backend.contents[doc_id] == scan.content


@pytest.mark.asyncio
async def test_update_requires_a_change(repository, backend):
    with pytest.raises(ValidationError, match="Nothing to update"):
        await repository.update("1", display_name="   ")
    with pytest.raises(ValidationError, match="Document ID is required"):
        await repository.update(None, category="Legal")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_delete_missing_document(repository, backend):
    with pytest.raises(DocumentNotFoundError) as exc_info:
        await repository.delete(99)

    assert str(exc_info.value) == "Document not found with id: 99"
    assert exc_info.value.doc_id == "99"


@pytest.mark.asyncio
async def test_download_uses_server_name(repository, backend):
    doc_id = backend.add_document("report.pdf", content=b"%PDF")

    downloaded = await repository.download(doc_id, "ignored.pdf")

    assert downloaded.file_name == "report.pdf"
    assert downloaded.content == b"%PDF"
    assert downloaded.content_type == "application/pdf"


@pytest.mark.asyncio
async def test_download_name_fallbacks(repository, backend):
    backend.send_disposition = False
    doc_id = backend.add_document("report.pdf")

    assert (await repository.download(doc_id, "mine.pdf")).file_name == "mine.pdf"
    assert (await repository.download(doc_id)).file_name == f"document-{doc_id}"


@pytest.mark.asyncio
async def test_download_without_session_sends_nothing(repository, backend, session):
    calls = []
    session.add_login_listener(lambda: calls.append("login"))
    session.clear_credential()

    with pytest.raises(AuthenticationRequiredError, match="Please login to download files"):
        await repository.download("1")

    assert backend.requests == []
    assert calls == ["login"]


@pytest.mark.asyncio
async def test_download_forbidden_message(repository, backend):
    backend.fail("GET", "/documents/download/3", httpx.Response(403, json={"message": "Forbidden"}))

    with pytest.raises(PermissionDeniedError, match="You don't have permission to download this file"):
        await repository.download("3")


@pytest.mark.asyncio
async def test_no_token_sent_after_unauthorized(repository, backend, session):
    backend.add_document("a.pdf")
    await repository.list_documents()

    backend.tokens.clear()
    with pytest.raises(AuthenticationRequiredError):
        await repository.list_documents()
    with pytest.raises(AuthenticationRequiredError):
        await repository.list_documents()

    assert backend.auth_headers() == ["Bearer abc", "Bearer abc", None]
    assert not session.is_authenticated

    backend.tokens.add("abc")
    session.set_credential("abc")
    await repository.list_documents()
    assert backend.auth_headers()[-1] == "Bearer abc"
