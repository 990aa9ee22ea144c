"""
Data models for the vault client library.

``DocumentRecord`` is the canonical shape every backend response is
normalized into. The backend has emitted several historical field names
(``fileName``/``filename``/``name``, numeric or string ids), and all of
them are folded here so the rest of the library only sees one shape.
"""

import mimetypes
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import normalize_doc_id


class Category(str, Enum):
    """Fixed set of document categories."""
    PERSONAL = "Personal"
    PROFESSIONAL = "Professional"
    FINANCIAL = "Financial"
    LEGAL = "Legal"
    MEDICAL = "Medical"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Any) -> 'Category':
        """
        Map a raw category value onto the enum.

        Missing values become Personal, unknown ones become Other.
        Matching is case-insensitive.
        """
        if isinstance(value, Category):
            return value
        if value is None or not str(value).strip():
            return cls.PERSONAL
        wanted = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.OTHER


UNTITLED_DOCUMENT = "Untitled Document"

# Wire key first, then the historical spellings, in precedence order
_FIELD_SOURCES = {
    "fileName": ("fileName", "file_name", "filename", "name"),
    "fileType": ("fileType", "file_type", "contentType"),
    "fileSize": ("fileSize", "file_size", "size"),
    "uploadDate": ("uploadDate", "upload_date", "uploadedAt"),
}


_ATTRIBUTE_NAMES = {
    "fileName": "file_name",
    "fileType": "file_type",
    "fileSize": "file_size",
    "uploadDate": "upload_date",
}
_ALIAS_KEYS = {source for sources in _FIELD_SOURCES.values() for source in sources}


def canonical_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rename a partial update's keys to DocumentRecord attribute names.

    Any spelling the backend uses is accepted; when several spellings of
    one field are present the same precedence as normalization applies.
    The id is never part of a patch.
    """
    changes = {k: v for k, v in patch.items() if k not in _ALIAS_KEYS and k != "id"}
    for wire_key, sources in _FIELD_SOURCES.items():
        for source in reversed(sources):
            if source in patch:
                changes[_ATTRIBUTE_NAMES[wire_key]] = patch[source]
    return changes


def _first_present(payload: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


class DocumentRecord(BaseModel):
    """Canonical metadata for one uploaded document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    file_name: str = Field(alias="fileName", min_length=1)
    file_type: Optional[str] = Field(default=None, alias="fileType")
    category: Category = Category.PERSONAL
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    upload_date: Optional[str] = Field(default=None, alias="uploadDate")
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fold_field_names(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True)
        if not isinstance(data, dict):
            return data

        folded = {
            "id": normalize_doc_id(data.get("id")),
            "category": data.get("category"),
            "tags": data.get("tags"),
        }
        for wire_key, sources in _FIELD_SOURCES.items():
            folded[wire_key] = _first_present(data, sources)
        if folded["fileName"] is None:
            folded["fileName"] = UNTITLED_DOCUMENT
        return folded

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, v):
        return Category.parse(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(tag) for tag in v if tag is not None]

    @field_validator("file_size", mode="before")
    @classmethod
    def _parse_size(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            size = int(v)
        except (TypeError, ValueError):
            return None
        # Unknown, not zero
        return size if size >= 0 else None

    @field_validator("upload_date", mode="before")
    @classmethod
    def _parse_upload_date(cls, v):
        if v is None:
            return None
        if isinstance(v, datetime):
            return v.isoformat()
        if isinstance(v, (list, tuple)):
            # Jackson's default LocalDateTime shape: [y, m, d, H, M, S, ns]
            try:
                return datetime(*[int(p) for p in v[:6]]).isoformat()
            except (TypeError, ValueError):
                return None
        return str(v)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'DocumentRecord':
        """Normalize one backend document object."""
        return cls.model_validate(payload)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize back to the backend's wire shape."""
        return self.model_dump(by_alias=True, mode="json")

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match on name, category and tags."""
        if not term:
            return True
        needle = term.lower()
        if needle in self.file_name.lower() or needle in self.category.value.lower():
            return True
        return any(needle in tag.lower() for tag in self.tags)


@dataclass(frozen=True)
class UploadCandidate:
    """A local file about to be uploaded."""
    name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> 'UploadCandidate':
        """
        Read a file from disk, guessing its MIME type from the extension.

        Args:
            path: Path to the file
            content_type: Explicit MIME type (skips guessing)

        Returns:
            UploadCandidate
        """
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content=path.read_bytes(), content_type=content_type)


@dataclass(frozen=True)
class DownloadedFile:
    """Binary payload of a download plus its resolved file name."""
    content: bytes
    file_name: str
    content_type: Optional[str] = None
