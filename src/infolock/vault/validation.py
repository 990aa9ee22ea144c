"""
Pre-flight validation of files before they are uploaded.
"""

from typing import FrozenSet, Optional

from .config import DEFAULT_MAX_UPLOAD_BYTES
from .exceptions import FileTooLargeError, UnsupportedTypeError, ValidationError
from .formatting import format_file_size
from .models import UploadCandidate

ALLOWED_MIME_TYPES: FrozenSet[str] = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/jpeg",
    "image/png",
})


class UploadValidator:
    """
    Checks a candidate file against the upload rules.

    Rules run in order and the first failure wins: size first, then MIME
    type. No network access.
    """

    def __init__(self, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
                 allowed_types: FrozenSet[str] = ALLOWED_MIME_TYPES):
        self.max_bytes = max_bytes
        self.allowed_types = allowed_types

    def check(self, candidate: UploadCandidate) -> Optional[ValidationError]:
        """Return the first rule violation, or None if the file is acceptable."""
        if candidate.size > self.max_bytes:
            return FileTooLargeError(
                f"File size must be less than {format_file_size(self.max_bytes)}",
                field="file",
                details={"size": candidate.size, "max_bytes": self.max_bytes},
            )

        content_type = (candidate.content_type or "").split(";")[0].strip().lower()
        if content_type not in self.allowed_types:
            return UnsupportedTypeError(
                "Only PDF, DOC, DOCX, XLS, XLSX, JPG, PNG files are allowed",
                field="file",
                value=candidate.content_type,
            )
        return None

    def validate(self, candidate: UploadCandidate) -> None:
        """
        Raise the first rule violation.

        Raises:
            FileTooLargeError: If the file exceeds the size limit
            UnsupportedTypeError: If the MIME type is not allowed
        """
        error = self.check(candidate)
        if error is not None:
            raise error
