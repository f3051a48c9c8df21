"""
Keeps comment marks in the content tree and thread records in the store
mutually consistent.

Two passes with different cadences:

- mark cleanup runs synchronously on every content change and strips marks
  whose thread no longer exists, so freshly typed text cannot inherit them;
- thread cleanup runs debounced and deletes non-AI threads that no mark
  references any more, so intermediate states (mid-undo, mid-paste) do not
  destroy threads.

Both passes are idempotent and never raise: a failure is logged and the
cycle is skipped.
"""

import logging
from collections.abc import Callable

from marginalia.editor.content import MarkCapabilities
from marginalia.store.threads import ThreadStore

logger = logging.getLogger(__name__)

DeletionListener = Callable[[str], None]


class MarkReconciler:
    """Reconciliation passes for one document."""

    def __init__(self, document_id: str, engine: MarkCapabilities, threads: ThreadStore) -> None:
        self.document_id = document_id
        self._engine = engine
        self._threads = threads
        self._deletion_listeners: list[DeletionListener] = []

    def on_thread_deleted(self, listener: DeletionListener) -> Callable[[], None]:
        """Register a listener called with each thread id deleted by cleanup."""
        self._deletion_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._deletion_listeners:
                self._deletion_listeners.remove(listener)

        return unsubscribe

    def cleanup_marks(self) -> set[str]:
        """
        Strip every mark whose thread id is not in the store.

        Returns:
            The orphaned thread ids whose marks were removed.
        """
        try:
            valid_ids = self._threads.ids(self.document_id)
            marked_ids = set(self._engine.get_all_positions())
            orphans = marked_ids - valid_ids
            if orphans:
                removed = self._engine.remove_mark(*sorted(orphans))
                logger.info(
                    "Removed %d orphaned mark span(s) for %d thread(s) in document %s",
                    removed, len(orphans), self.document_id,
                )
            return orphans
        except Exception:
            logger.exception("Mark cleanup failed for document %s", self.document_id)
            return set()

    def cleanup_threads(self) -> list[str]:
        """
        Delete non-AI threads that no mark references.

        AI threads have no anchor requirement and are never deleted here.

        Returns:
            Ids of the deleted threads, each reported to listeners exactly once.
        """
        try:
            marked_ids = set(self._engine.get_all_positions())
            orphans = {
                thread.id
                for thread in self._threads.list_for_document(self.document_id)
                if not thread.is_ai_thread and thread.id not in marked_ids
            }
            deleted = self._threads.delete_many(self.document_id, orphans) if orphans else []
        except Exception:
            logger.exception("Thread cleanup failed for document %s", self.document_id)
            return []

        for thread_id in deleted:
            logger.info("Deleted orphaned thread %s in document %s", thread_id, self.document_id)
            for listener in list(self._deletion_listeners):
                try:
                    listener(thread_id)
                except Exception:
                    logger.exception("Thread deletion listener failed for %s", thread_id)
        return deleted

    def reconcile(self) -> tuple[list[str], set[str]]:
        """Run thread cleanup then mark cleanup."""
        deleted = self.cleanup_threads()
        orphans = self.cleanup_marks()
        return deleted, orphans
