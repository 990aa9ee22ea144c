import pytest

from infolock.vault.exceptions import FileTooLargeError, UnsupportedTypeError
from infolock.vault.models import UploadCandidate
from infolock.vault.validation import ALLOWED_MIME_TYPES, UploadValidator

LIMIT = 10 * 1024 * 1024


def _candidate(size: int, content_type: str = "application/pdf") -> UploadCandidate:
    return UploadCandidate(name="file", content=b"x" * size, content_type=content_type)


@pytest.mark.parametrize("content_type", sorted(ALLOWED_MIME_TYPES))
def test_allowed_types_pass(content_type):
    assert UploadValidator().check(_candidate(10, content_type)) is None


def test_limit_is_inclusive():
    validator = UploadValidator()
    assert validator.check(_candidate(LIMIT)) is None
    error = validator.check(_candidate(LIMIT + 1))
    assert isinstance(error, FileTooLargeError)
    assert error.message == "File size must be less than 10.0 MB"


@pytest.mark.parametrize("content_type", ["text/plain", "application/zip", None, ""])
def test_other_types_are_rejected(content_type):
    error = UploadValidator().check(_candidate(10, content_type))
    assert isinstance(error, UnsupportedTypeError)
    assert error.message == "Only PDF, DOC, DOCX, XLS, XLSX, JPG, PNG files are allowed"


def test_size_is_checked_before_type():
    error = UploadValidator(max_bytes=4).check(_candidate(5, "text/plain"))
    assert isinstance(error, FileTooLargeError)


def test_mime_parameters_and_case_are_ignored():
    assert UploadValidator().check(_candidate(1, "Image/PNG; name=a.png")) is None


def test_validation_is_deterministic():
    validator = UploadValidator(max_bytes=100)
    candidates = [_candidate(50), _candidate(150), _candidate(50, "text/csv")]
    first = [type(validator.check(c)) for c in candidates]
    second = [type(validator.check(c)) for c in candidates]
    assert first == second


def test_validate_raises_first_violation():
    with pytest.raises(UnsupportedTypeError):
        UploadValidator().validate(_candidate(1, "text/html"))
    UploadValidator().validate(_candidate(1))
