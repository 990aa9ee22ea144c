"""
Per-document operation tracking for the document store.

Each mutating call takes a generation for its document id before it
suspends on the network. When it resumes with a result, the result is only
applied if no later-issued operation on the same id has already been
applied; otherwise it is stale and discarded.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger


@dataclass(frozen=True)
class PendingOperation:
    """One in-flight mutation on a document."""
    doc_id: str
    generation: int
    kind: str


class GenerationTracker:
    """Issued and applied generations per document id."""

    def __init__(self):
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}
        self._pending: Dict[str, PendingOperation] = {}

    def begin(self, doc_id: str, kind: str) -> PendingOperation:
        """Issue the next generation for ``doc_id``."""
        generation = self._issued.get(doc_id, 0) + 1
        self._issued[doc_id] = generation

        superseded = self._pending.get(doc_id)
        if superseded is not None:
            logger.debug(
                f"{kind} on document {doc_id} queued behind {superseded.kind} "
                f"(generation {superseded.generation}) is in flight"
            )

        operation = PendingOperation(doc_id=doc_id, generation=generation, kind=kind)
        self._pending[doc_id] = operation
        return operation

    def accept(self, operation: PendingOperation) -> bool:
        """
        Claim the right to apply ``operation``'s result.

        Returns False when a later-issued operation on the same id has
        already been applied.
        """
        if operation.generation <= self._applied.get(operation.doc_id, 0):
            return False
        self._applied[operation.doc_id] = operation.generation
        return True

    def finish(self, operation: PendingOperation) -> None:
        """Clear the pending marker, unless a newer operation now owns it."""
        if self._pending.get(operation.doc_id) == operation:
            del self._pending[operation.doc_id]

    def pending(self, doc_id: str) -> Optional[PendingOperation]:
        return self._pending.get(doc_id)

    def is_pending(self, doc_id: str) -> bool:
        return doc_id in self._pending
