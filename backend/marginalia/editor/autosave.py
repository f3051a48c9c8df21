"""
Autosave pipeline for one editing session.

On each content change:
1. mark cleanup runs immediately, on the same change cycle;
2. a debounced save of the serialized content is scheduled;
3. a debounced thread cleanup is scheduled.

Title edits have their own debounced stream. Closing the pipeline cancels
every pending timer, so nothing is written after teardown.
"""

import logging
from collections.abc import Callable

from marginalia.config import Settings, get_settings
from marginalia.editor.content import ContentEngine
from marginalia.editor.reconciler import MarkReconciler
from marginalia.editor.scheduler import CoalescingScheduler
from marginalia.schemas.documents import Document
from marginalia.store.documents import DocumentStore

logger = logging.getLogger(__name__)

CONTENT_STREAM = "content"
TITLE_STREAM = "title"
CLEANUP_STREAM = "cleanup"


class AutosavePipeline:
    """Coalesces edit events into persisted writes and drives reconciliation timing."""

    def __init__(
        self,
        document_id: str,
        engine: ContentEngine,
        documents: DocumentStore,
        reconciler: MarkReconciler,
        *,
        scheduler: CoalescingScheduler | None = None,
        settings: Settings | None = None,
        on_saved: Callable[[Document], None] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.document_id = document_id
        self._engine = engine
        self._documents = documents
        self._reconciler = reconciler
        self._scheduler = scheduler or CoalescingScheduler()
        self._on_saved = on_saved
        self._content_delay = settings.content_save_delay
        self._title_delay = settings.title_save_delay
        self._cleanup_delay = settings.thread_cleanup_delay
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def scheduler(self) -> CoalescingScheduler:
        return self._scheduler

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> Document:
        """Load stored content without emitting a change, then start listening."""
        if self.active:
            raise RuntimeError("Autosave pipeline already started")
        if self._scheduler.closed:
            self._scheduler = CoalescingScheduler()
        document = self._documents.get_or_create(self.document_id)
        self._engine.set_content(document.content, emit_update=False)
        self._unsubscribe = self._engine.subscribe(self.handle_change)
        logger.debug("Autosave started for document %s", self.document_id)
        return document

    def handle_change(self, engine: ContentEngine) -> None:
        if not self.active:
            return
        self._reconciler.cleanup_marks()
        self._scheduler.schedule(CONTENT_STREAM, self._content_delay, self._save_content)
        self._scheduler.schedule(CLEANUP_STREAM, self._cleanup_delay, self._reconciler.cleanup_threads)

    def set_title(self, title: str) -> None:
        if not self.active:
            return
        self._scheduler.schedule(TITLE_STREAM, self._title_delay, self._save_title, title)

    def close(self) -> None:
        """Stop listening and cancel pending saves and cleanups."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._scheduler.close()
        logger.debug("Autosave closed for document %s", self.document_id)

    def __enter__(self) -> "AutosavePipeline":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _save_content(self) -> None:
        document = self._documents.update(self.document_id, content=self._engine.to_json())
        if document is None:
            logger.warning("Document %s vanished before autosave", self.document_id)
            return
        if self._on_saved is not None:
            self._on_saved(document)

    def _save_title(self, title: str) -> None:
        document = self._documents.update(self.document_id, title=title)
        if document is not None and self._on_saved is not None:
            self._on_saved(document)
