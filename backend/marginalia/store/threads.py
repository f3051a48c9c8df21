"""
Thread persistence.

Layout: collection "threads" maps document id -> list of thread records.
Every mutation reads the whole collection, modifies it and writes it back.
Thread records never contain anchor coordinates; the live anchor is always
derived from the content tree.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from marginalia.schemas.ai import AskAIMode
from marginalia.schemas.threads import Message, MessageAuthor, MessageStatus, Thread
from marginalia.store.base import KeyValueStore
from marginalia.utils import generate_id, now_ms

logger = logging.getLogger(__name__)

THREADS_COLLECTION = "threads"


class ThreadNotFoundError(LookupError):
    """No thread with the given id in the document."""


class MessageNotFoundError(LookupError):
    """No message with the given id in the thread."""


class ThreadResolvedError(RuntimeError):
    """The thread is resolved and accepts no new messages until reopened."""


class NotAIThreadError(RuntimeError):
    """The operation needs an AI thread but the thread is a human comment thread."""


def _migrate_record(item: dict[str, Any]) -> dict[str, Any]:
    """Convert a legacy single-comment record into a thread record."""
    if isinstance(item.get("messages"), list):
        return item

    now = now_ms()
    created_at = item.get("createdAt") or now
    updated_at = item.get("updatedAt") or now
    messages = []
    if item.get("content"):
        messages.append(
            {
                "id": generate_id(),
                "content": item["content"],
                "author": MessageAuthor.HUMAN.value,
                "createdAt": created_at,
                "updatedAt": updated_at,
            }
        )
    return {
        "id": item["id"],
        "documentId": item["documentId"],
        "highlightedText": item.get("highlightedText") or "",
        "messages": messages,
        "resolved": False,
        "createdAt": created_at,
        "updatedAt": updated_at,
    }


class ThreadStore:
    """Comment and AI threads for all documents."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # =========================================================================
    # COLLECTION ACCESS
    # =========================================================================

    def _read_all(self) -> dict[str, list[Thread]]:
        raw = self._store.read(THREADS_COLLECTION, default={}) or {}
        result: dict[str, list[Thread]] = {}
        for document_id, records in raw.items():
            threads = []
            for record in records:
                try:
                    threads.append(Thread.model_validate(_migrate_record(record)))
                except Exception:
                    logger.exception("Skipping unreadable thread record in document %s", document_id)
            result[document_id] = threads
        return result

    def _write_all(self, data: dict[str, list[Thread]]) -> None:
        payload = {
            document_id: [thread.dump() for thread in threads]
            for document_id, threads in data.items()
            if threads
        }
        self._store.write(THREADS_COLLECTION, payload)

    @contextmanager
    def _mutate(self, document_id: str, thread_id: str) -> Iterator[Thread]:
        """Yield a thread for in-place mutation and write the collection back."""
        data = self._read_all()
        thread = next((t for t in data.get(document_id, []) if t.id == thread_id), None)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        yield thread
        thread.updated_at = now_ms()
        self._write_all(data)

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]:
        return self._store.subscribe(THREADS_COLLECTION, listener)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_for_document(self, document_id: str) -> list[Thread]:
        """All threads for a document, oldest first."""
        threads = self._read_all().get(document_id, [])
        return sorted(threads, key=lambda t: t.created_at)

    def get(self, document_id: str, thread_id: str) -> Thread | None:
        return next((t for t in self.list_for_document(document_id) if t.id == thread_id), None)

    def ids(self, document_id: str) -> set[str]:
        return {t.id for t in self.list_for_document(document_id)}

    # =========================================================================
    # HUMAN THREADS
    # =========================================================================

    def create(self, document_id: str, content: str, highlighted_text: str) -> Thread:
        """Create a thread whose root message is `content`."""
        now = now_ms()
        thread = Thread(
            id=generate_id(),
            document_id=document_id,
            highlighted_text=highlighted_text,
            messages=[Message(id=generate_id(), content=content, created_at=now, updated_at=now)],
            created_at=now,
            updated_at=now,
        )
        data = self._read_all()
        data.setdefault(document_id, []).append(thread)
        self._write_all(data)
        return thread

    def add_reply(self, document_id: str, thread_id: str, content: str) -> Message:
        return self._append(document_id, thread_id, content, MessageAuthor.HUMAN)

    def update_message(self, document_id: str, thread_id: str, message_id: str, content: str) -> Message:
        """Edit a message's content in place. Order is never changed."""
        with self._mutate(document_id, thread_id) as thread:
            message = self._find_message(thread, message_id)
            message.content = content
            message.updated_at = now_ms()
        return message

    def delete_message(self, document_id: str, thread_id: str, message_id: str) -> bool:
        """
        Delete one message.

        Returns:
            True if that was the last message and the whole thread was deleted.
        """
        data = self._read_all()
        threads = data.get(document_id, [])
        thread = next((t for t in threads if t.id == thread_id), None)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        self._find_message(thread, message_id)

        thread.messages = [m for m in thread.messages if m.id != message_id]
        if not thread.messages:
            threads.remove(thread)
            self._write_all(data)
            return True

        thread.updated_at = now_ms()
        self._write_all(data)
        return False

    def toggle_resolve(self, document_id: str, thread_id: str) -> bool:
        """Flip the resolved flag. Returns the new value."""
        with self._mutate(document_id, thread_id) as thread:
            thread.resolved = not thread.resolved
        return thread.resolved

    def delete(self, document_id: str, thread_id: str) -> bool:
        """Delete a thread. Returns False if it did not exist."""
        data = self._read_all()
        threads = data.get(document_id, [])
        remaining = [t for t in threads if t.id != thread_id]
        if len(remaining) == len(threads):
            return False
        data[document_id] = remaining
        self._write_all(data)
        return True

    def delete_many(self, document_id: str, thread_ids: set[str]) -> list[str]:
        """Delete several threads in one write. Returns the ids actually deleted."""
        data = self._read_all()
        threads = data.get(document_id, [])
        deleted = [t.id for t in threads if t.id in thread_ids]
        if not deleted:
            return []
        data[document_id] = [t for t in threads if t.id not in thread_ids]
        self._write_all(data)
        return deleted

    def delete_for_document(self, document_id: str) -> None:
        data = self._read_all()
        if data.pop(document_id, None) is not None:
            self._write_all(data)

    # =========================================================================
    # AI THREADS
    # =========================================================================

    def create_ai_thread(self, document_id: str, highlighted_text: str, mode: AskAIMode) -> Thread:
        """Create an empty AI thread, ready for the user's prompt."""
        now = now_ms()
        thread = Thread(
            id=generate_id(),
            document_id=document_id,
            highlighted_text=highlighted_text,
            messages=[],
            created_at=now,
            updated_at=now,
            is_ai_thread=True,
            ai_mode=mode,
        )
        data = self._read_all()
        data.setdefault(document_id, []).append(thread)
        self._write_all(data)
        return thread

    def add_user_prompt(self, document_id: str, thread_id: str, prompt: str) -> Message:
        return self._append(document_id, thread_id, prompt, MessageAuthor.HUMAN, ai_only=True)

    def add_ai_message(
        self,
        document_id: str,
        thread_id: str,
        content: str,
        status: MessageStatus = MessageStatus.COMPLETE,
    ) -> Message:
        return self._append(
            document_id, thread_id, content, MessageAuthor.MODEL, status=status, ai_only=True
        )

    def update_ai_message(
        self,
        document_id: str,
        thread_id: str,
        message_id: str,
        content: str,
        status: MessageStatus = MessageStatus.COMPLETE,
        proposed_text: str | None = None,
    ) -> Message:
        """Replace a model message, e.g. the pending placeholder with the real response."""
        with self._mutate(document_id, thread_id) as thread:
            message = self._find_message(thread, message_id)
            message.content = content
            message.status = status
            message.proposed_text = proposed_text
            message.updated_at = now_ms()
        return message

    def update_ai_thread_mode(self, document_id: str, thread_id: str, mode: AskAIMode) -> None:
        with self._mutate(document_id, thread_id) as thread:
            if not thread.is_ai_thread:
                raise NotAIThreadError(thread_id)
            thread.ai_mode = mode

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _append(
        self,
        document_id: str,
        thread_id: str,
        content: str,
        author: MessageAuthor,
        status: MessageStatus | None = None,
        ai_only: bool = False,
    ) -> Message:
        now = now_ms()
        message = Message(
            id=generate_id(),
            author=author,
            content=content,
            status=status,
            created_at=now,
            updated_at=now,
        )
        with self._mutate(document_id, thread_id) as thread:
            if ai_only and not thread.is_ai_thread:
                raise NotAIThreadError(thread_id)
            if thread.resolved:
                raise ThreadResolvedError(thread_id)
            thread.messages.append(message)
        return message

    @staticmethod
    def _find_message(thread: Thread, message_id: str) -> Message:
        message = next((m for m in thread.messages if m.id == message_id), None)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message
