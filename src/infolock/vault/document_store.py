"""
Client-side document collection for the vault client library.

``DocumentStore`` is the one place a UI reads documents from and mutates
them through. Changes are applied only after the backend confirms them.
Mutations on one document are queued: a second edit or delete on the same
id is not sent until the first has resolved, so an update can never land
after a delete and bring the document back. Per-document generations
still guard every result before it is applied.
"""

import asyncio
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from loguru import logger

from .exceptions import ValidationError
from .models import Category, DocumentRecord, UploadCandidate, canonical_patch
from .operations import GenerationTracker, PendingOperation
from .repository import DocumentRepository
from .utils import normalize_doc_id

Patch = Union[DocumentRecord, Dict[str, Any]]


class DocumentStore:
    """
    Ordered, searchable collection of documents.

    Newest uploads come first. Records are unique by id.
    """

    def __init__(self, repository: DocumentRepository, records: Optional[Iterable[DocumentRecord]] = None):
        """
        Initialize DocumentStore.

        Args:
            repository: Backend operations the intents delegate to
            records: Optional initial contents
        """
        self.repository = repository
        self._records: List[DocumentRecord] = []
        self._search_term = ""
        self._tracker = GenerationTracker()
        # One lock per id with a mutation outstanding
        self._locks: Dict[str, asyncio.Lock] = {}

        # Mutations confirmed while a refresh is in flight: id -> (epoch, kind, record)
        self._epoch = 0
        self._refreshes_in_flight = 0
        self._refresh_generation = 0
        self._applied_refresh = 0
        self._confirmed: Dict[str, Tuple[int, str, Optional[DocumentRecord]]] = {}

        if records:
            self.replace_all(records)

    # ==========================================
    # Reads
    # ==========================================

    @property
    def records(self) -> List[DocumentRecord]:
        return list(self._records)

    @property
    def search_term(self) -> str:
        return self._search_term

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DocumentRecord]:
        return iter(list(self._records))

    def get(self, doc_id: Any) -> Optional[DocumentRecord]:
        index = self._index_of(normalize_doc_id(doc_id))
        return self._records[index] if index is not None else None

    def filtered(self) -> List[DocumentRecord]:
        """Records whose name, category or any tag contains the search term."""
        return [record for record in self._records if record.matches(self._search_term)]

    def is_pending(self, doc_id: Any) -> bool:
        """True while a mutation on ``doc_id`` is awaiting the backend."""
        return self._tracker.is_pending(normalize_doc_id(doc_id) or "")

    def summary(self) -> Dict[str, Any]:
        """
        Figures for a library header ("12 documents, 3 matching search").

        Returns:
            Dictionary with total, matching, total_size and unknown_sizes
        """
        known = [r.file_size for r in self._records if r.file_size is not None]
        return {
            "total": len(self._records),
            "matching": len(self.filtered()),
            "total_size": sum(known),
            "unknown_sizes": len(self._records) - len(known),
        }

    # ==========================================
    # State transitions
    # ==========================================

    def set_search_term(self, term: Optional[str]) -> None:
        self._search_term = (term or "").strip()

    def replace_all(self, records: Iterable[DocumentRecord]) -> None:
        """Replace the collection, keeping the first record seen for each id."""
        seen = set()
        unique = []
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            unique.append(record)
        self._records = unique

    def apply_upload(self, record: DocumentRecord) -> None:
        """Prepend a confirmed upload; an existing entry with the same id is replaced."""
        self._records = [record] + [r for r in self._records if r.id != record.id]

    def apply_update(self, doc_id: Any, patch: Patch) -> bool:
        """
        Replace the mutable fields of one record.

        Missing ids are a no-op: a concurrent delete may already have
        removed the record.

        Args:
            doc_id: Document ID
            patch: A server record, or a dict of fields (snake_case or wire names)

        Returns:
            True if a record was updated
        """
        doc_id = normalize_doc_id(doc_id)
        index = self._index_of(doc_id)
        if index is None:
            logger.debug(f"apply_update: document {doc_id} not in store, ignoring")
            return False

        if isinstance(patch, DocumentRecord):
            changes = patch.model_dump(exclude={"id"})
        else:
            changes = canonical_patch(patch)

        current = self._records[index]
        merged = {**current.model_dump(), **changes, "id": current.id}
        self._records[index] = DocumentRecord.model_validate(merged)
        return True

    def apply_delete(self, doc_id: Any) -> bool:
        """Remove one record. Missing ids are a no-op."""
        doc_id = normalize_doc_id(doc_id)
        before = len(self._records)
        self._records = [r for r in self._records if r.id != doc_id]
        return len(self._records) != before

    # ==========================================
    # Intents
    # ==========================================

    async def refresh(self) -> List[DocumentRecord]:
        """
        Reload the collection from the backend.

        Mutations confirmed while the listing was in flight are folded back
        in, so a slow listing cannot resurrect a deleted document or revert
        an edit. If a newer refresh has already been applied, this result
        is dropped; a newer refresh that failed does not block it.

        Returns:
            The collection after the refresh
        """
        self._refresh_generation += 1
        generation = self._refresh_generation
        start_epoch = self._epoch
        self._refreshes_in_flight += 1
        try:
            listing = await self.repository.list_documents()
        finally:
            self._refreshes_in_flight -= 1

        if generation < self._applied_refresh:
            logger.warning("Discarding stale document listing; a newer refresh was already applied")
        else:
            self._applied_refresh = generation
            self.replace_all(self._merge_listing(listing, start_epoch))
            logger.info(f"Document store refreshed with {len(self._records)} documents")

        if self._refreshes_in_flight == 0:
            self._confirmed.clear()
        return self.records

    async def upload(self, file: UploadCandidate, category: Union[Category, str],
                     display_name: Optional[str] = None) -> DocumentRecord:
        """Upload a document and prepend the confirmed record."""
        record = await self.repository.upload(file, category, display_name)
        self.apply_upload(record)
        self._note_confirmed(record.id, "upload", record)
        return record

    async def update(self, doc_id: Any, file: Optional[UploadCandidate] = None,
                     category: Union[Category, str, None] = None,
                     display_name: Optional[str] = None) -> Optional[DocumentRecord]:
        """
        Update a document and apply the confirmed record.

        Waits for any edit or delete already in flight on ``doc_id``.

        Returns:
            The server's record, or None if the result was stale and discarded
        """
        doc_id = self._require_id(doc_id)
        operation = self._tracker.begin(doc_id, "update")
        try:
            async with self._lock_for(doc_id):
                record = await self.repository.update(doc_id, file=file, category=category,
                                                      display_name=display_name)
                if not self._tracker.accept(operation):
                    logger.warning(f"Discarding stale update result for document {doc_id}")
                    return None

                if self.apply_update(doc_id, record):
                    self._note_confirmed(doc_id, "update", self.get(doc_id))
                return record
        finally:
            self._finish(operation)

    async def delete(self, doc_id: Any) -> bool:
        """
        Delete a document and remove it once the backend confirms.

        Waits for any edit or delete already in flight on ``doc_id``.

        Returns:
            True if the deletion was applied, False if it was stale
        """
        doc_id = self._require_id(doc_id)
        operation = self._tracker.begin(doc_id, "delete")
        try:
            async with self._lock_for(doc_id):
                await self.repository.delete(doc_id)
                if not self._tracker.accept(operation):
                    logger.warning(f"Discarding stale delete result for document {doc_id}")
                    return False

                self.apply_delete(doc_id)
                self._note_confirmed(doc_id, "delete", None)
                return True
        finally:
            self._finish(operation)

    # ==========================================
    # Internals
    # ==========================================

    def _index_of(self, doc_id: Optional[str]) -> Optional[int]:
        if doc_id is None:
            return None
        for index, record in enumerate(self._records):
            if record.id == doc_id:
                return index
        return None

    @staticmethod
    def _require_id(doc_id: Any) -> str:
        normalized = normalize_doc_id(doc_id)
        if normalized is None:
            raise ValidationError("Document ID is required", field="id")
        return normalized

    def _lock_for(self, doc_id: str) -> asyncio.Lock:
        lock = self._locks.get(doc_id)
        if lock is None:
            lock = self._locks[doc_id] = asyncio.Lock()
        elif lock.locked():
            logger.debug(f"Queueing mutation on document {doc_id} behind the one in flight")
        return lock

    def _finish(self, operation: PendingOperation) -> None:
        self._tracker.finish(operation)
        lock = self._locks.get(operation.doc_id)
        if lock is not None and not lock.locked() and not self._tracker.is_pending(operation.doc_id):
            del self._locks[operation.doc_id]

    def _note_confirmed(self, doc_id: str, kind: str, record: Optional[DocumentRecord]) -> None:
        self._epoch += 1
        if self._refreshes_in_flight:
            self._confirmed[doc_id] = (self._epoch, kind, record)

    def _merge_listing(self, listing: List[DocumentRecord], since_epoch: int) -> List[DocumentRecord]:
        changes = {
            doc_id: (epoch, kind, record)
            for doc_id, (epoch, kind, record) in self._confirmed.items()
            if epoch > since_epoch
        }
        if not changes:
            return listing

        merged = []
        for record in listing:
            change = changes.get(record.id)
            if change is None:
                merged.append(record)
            elif change[1] != "delete" and change[2] is not None:
                merged.append(change[2])

        listed = {record.id for record in merged}
        uploads = sorted(
            (epoch, record) for doc_id, (epoch, kind, record) in changes.items()
            if kind == "upload" and doc_id not in listed and record is not None
        )
        # Newest upload first
        return [record for _, record in reversed(uploads)] + merged
