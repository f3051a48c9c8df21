"""Document persistence. Collection "documents" maps document id -> record."""

from typing import Any

from marginalia.schemas.documents import Document
from marginalia.store.base import KeyValueStore
from marginalia.utils import generate_id, now_ms

DOCUMENTS_COLLECTION = "documents"


class DocumentStore:
    """Minimal document bookkeeping used by the autosave pipeline."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _read_all(self) -> dict[str, dict]:
        return self._store.read(DOCUMENTS_COLLECTION, default={}) or {}

    def get(self, document_id: str) -> Document | None:
        record = self._read_all().get(document_id)
        return Document.model_validate(record) if record is not None else None

    def create(self, document_id: str | None = None, title: str = "Untitled") -> Document:
        """Create a document. A colliding id is replaced by a fresh one."""
        documents = self._read_all()
        if document_id is None or document_id in documents:
            document_id = generate_id()
        now = now_ms()
        document = Document(id=document_id, title=title, created_at=now, updated_at=now)
        documents[document_id] = document.dump()
        self._store.write(DOCUMENTS_COLLECTION, documents)
        return document

    def get_or_create(self, document_id: str) -> Document:
        return self.get(document_id) or self.create(document_id)

    def update(
        self,
        document_id: str,
        *,
        content: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> Document | None:
        """Replace content and/or title and bump updatedAt. Unknown ids are ignored."""
        documents = self._read_all()
        record = documents.get(document_id)
        if record is None:
            return None
        document = Document.model_validate(record)
        if content is not None:
            document.content = content
        if title is not None:
            document.title = title
        document.updated_at = now_ms()
        documents[document_id] = document.dump()
        self._store.write(DOCUMENTS_COLLECTION, documents)
        return document
