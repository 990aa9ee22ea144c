"""
Display formatting for document metadata.

Pure functions only: byte counts, upload timestamps and MIME types become
the short strings a document card or listing shows.
"""

from datetime import datetime
from typing import Optional

UNKNOWN_SIZE = "Unknown size"
RECENT_UPLOAD = "Recently"
GENERIC_FILE_TYPE = "FILE"

# Office MIME types are too long to show; give them their extension label
_TYPE_LABELS = {
    "application/pdf": "PDF",
    "application/msword": "DOC",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "application/vnd.ms-excel": "XLS",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "XLSX",
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}


def format_file_size(size_bytes: Optional[int]) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes, or None when the size is unknown

    Returns:
        str: Formatted size (e.g., "1.5 MB")
    """
    if size_bytes is None or size_bytes < 0:
        return UNKNOWN_SIZE

    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['B', 'KB', 'MB', 'GB', 'TB']
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    return f"{size:.1f} {units[unit_index]}"


def format_upload_date(value: Optional[str]) -> str:
    """
    Format an ISO-8601 upload timestamp as e.g. "Mar 4, 2024".

    Missing or unparseable values show as "Recently".
    """
    if not value:
        return RECENT_UPLOAD
    try:
        # fromisoformat only learned the Z suffix in 3.11
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return RECENT_UPLOAD
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def format_file_type(mime_type: Optional[str]) -> str:
    """Short upper-case label for a MIME type ("PDF", "DOCX", "FILE")."""
    if not mime_type:
        return GENERIC_FILE_TYPE
    base = mime_type.split(";")[0].strip().lower()
    if base in _TYPE_LABELS:
        return _TYPE_LABELS[base]
    return base.rsplit("/", 1)[-1].upper() or GENERIC_FILE_TYPE
