"""
One open document: content engine, thread panel state and AI threads.

The session owns the autosave pipeline and the reconciler for its document
and rebuilds the thread panel from scratch whenever the content tree or the
"threads" collection changes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from marginalia.ai.errors import ConfigurationError, ValidationError
from marginalia.ai.protocol import AIRequestProtocol
from marginalia.config import Settings, get_settings
from marginalia.editor.autosave import AutosavePipeline
from marginalia.editor.content import ContentEngine
from marginalia.editor.context import ContextPackBuilder
from marginalia.editor.positions import Anchor, PositionResolver
from marginalia.editor.reconciler import MarkReconciler
from marginalia.schemas.ai import AskAIMode, RequestMeta
from marginalia.schemas.documents import Document
from marginalia.schemas.threads import Message, MessageStatus, Thread
from marginalia.store.brains import BrainStore
from marginalia.store.documents import DocumentStore
from marginalia.store.threads import (
    NotAIThreadError,
    ThreadNotFoundError,
    ThreadResolvedError,
    ThreadStore,
)

logger = logging.getLogger(__name__)

PENDING_AI_MESSAGE = "Thinking..."


@dataclass(frozen=True)
class ThreadView:
    """A thread as shown in the panel, with its live anchor."""

    thread: Thread
    display_text: str
    anchor: Anchor | None

    @property
    def id(self) -> str:
        return self.thread.id

    @property
    def anchored(self) -> bool:
        return self.anchor is not None

    @property
    def can_reply(self) -> bool:
        return not self.thread.resolved


@dataclass
class ThreadPanelState:
    """Derived view state. Never persisted; rebuilt on every change."""

    open_threads: list[ThreadView] = field(default_factory=list)
    resolved_threads: list[ThreadView] = field(default_factory=list)

    @property
    def open_count(self) -> int:
        return len(self.open_threads)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved_threads)

    @property
    def total(self) -> int:
        return self.open_count + self.resolved_count

    def find(self, thread_id: str) -> ThreadView | None:
        return next(
            (view for view in self.open_threads + self.resolved_threads if view.id == thread_id),
            None,
        )

    @classmethod
    def build(cls, threads: list[Thread], anchors: dict[str, Anchor]) -> "ThreadPanelState":
        """Order threads by live position and split them by resolution."""
        ordered = PositionResolver.order(threads, anchors)
        views = []
        for thread in ordered:
            anchor = anchors.get(thread.id)
            live_text = anchor.text if anchor else ""
            views.append(
                ThreadView(thread=thread, display_text=live_text or thread.highlighted_text, anchor=anchor)
            )
        return cls(
            open_threads=[view for view in views if not view.thread.resolved],
            resolved_threads=[view for view in views if view.thread.resolved],
        )


class EditingSession:
    """
    Editing session for a single document.

    Usage:
        async with EditingSession(document_id, engine, threads, brains, documents, protocol) as session:
            session.engine.select(1, 6)
            thread = session.add_comment("Tighten this")
    """

    def __init__(
        self,
        document_id: str,
        engine: ContentEngine,
        threads: ThreadStore,
        brains: BrainStore,
        documents: DocumentStore,
        protocol: AIRequestProtocol,
        settings: Settings | None = None,
        *,
        project_id: str | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.document_id = document_id
        # One brain per project; a document is its own project unless told otherwise
        self.project_id = project_id or document_id
        self.engine = engine
        self._threads = threads
        self._brains = brains
        self._protocol = protocol
        self.reconciler = MarkReconciler(document_id, engine, threads)
        self.autosave = AutosavePipeline(document_id, engine, documents, self.reconciler, settings=settings)
        self.context = ContextPackBuilder(engine)
        self.panel = ThreadPanelState()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def is_open(self) -> bool:
        return self.autosave.active

    def open(self) -> Document:
        """Load the document, start autosave and start tracking threads."""
        document = self.autosave.start()
        self._unsubscribers = [
            self._threads.subscribe(self._on_threads_changed),
            self.engine.subscribe(self._on_content_changed),
            self.reconciler.on_thread_deleted(self._on_thread_deleted),
        ]
        self.reload()
        logger.info("Opened editing session for document %s", self.document_id)
        return document

    def close(self) -> None:
        """Cancel pending timers and drop every subscription."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.autosave.close()
        logger.info("Closed editing session for document %s", self.document_id)

    async def __aenter__(self) -> "EditingSession":
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # VIEW STATE
    # =========================================================================

    def reload(self) -> ThreadPanelState:
        """Rebuild the panel from the store and the current content tree."""
        threads = self._threads.list_for_document(self.document_id)
        self.panel = ThreadPanelState.build(threads, self.engine.get_all_positions())
        return self.panel

    def _on_threads_changed(self, collection: str) -> None:
        self.reload()

    def _on_content_changed(self, engine: ContentEngine) -> None:
        self.reload()

    def _on_thread_deleted(self, thread_id: str) -> None:
        logger.debug("Thread %s removed by cleanup", thread_id)

    # =========================================================================
    # COMMENT THREADS
    # =========================================================================

    def add_comment(self, content: str) -> Thread:
        """
        Create a thread on the current selection and mark it.

        Raises:
            ValueError: if the selection is empty.
        """
        from_, to = self.engine.selection
        highlighted_text = self.engine.selected_text()
        if from_ == to or not highlighted_text:
            raise ValueError("Select some text before adding a comment")

        thread = self._threads.create(self.document_id, content, highlighted_text)
        self.engine.apply_mark(thread.id, from_, to)
        return thread

    def reply(self, thread_id: str, content: str) -> Message:
        return self._threads.add_reply(self.document_id, thread_id, content)

    def edit_message(self, thread_id: str, message_id: str, content: str) -> Message:
        return self._threads.update_message(self.document_id, thread_id, message_id, content)

    def delete_message(self, thread_id: str, message_id: str) -> bool:
        """Delete a message; removes the mark too when the thread goes with it."""
        thread_deleted = self._threads.delete_message(self.document_id, thread_id, message_id)
        if thread_deleted:
            self.engine.remove_mark(thread_id)
        return thread_deleted

    def delete_thread(self, thread_id: str) -> bool:
        deleted = self._threads.delete(self.document_id, thread_id)
        self.engine.remove_mark(thread_id)
        return deleted

    def toggle_resolve(self, thread_id: str) -> bool:
        return self._threads.toggle_resolve(self.document_id, thread_id)

    # =========================================================================
    # AI THREADS
    # =========================================================================

    async def ask_ai(
        self,
        prompt: str,
        mode: AskAIMode = AskAIMode.CRITIQUE,
        thread_id: str | None = None,
        *,
        include_full_doc: bool = False,
    ) -> Thread:
        """
        Send a prompt to the margin editor and record the exchange in an AI thread.

        A new AI thread is created from the current selection when
        `thread_id` is None. The model's message starts as a pending
        placeholder and is replaced by the response, or by the error text
        when the request is rejected.

        Raises:
            ThreadNotFoundError: if `thread_id` does not exist.
            NotAIThreadError: if `thread_id` is a human comment thread.
            ThreadResolvedError: if the thread is resolved.
        """
        if thread_id is None:
            thread = self._threads.create_ai_thread(
                self.document_id, self.context.selected_text(), mode
            )
        else:
            thread = self._threads.get(self.document_id, thread_id)
            if thread is None:
                raise ThreadNotFoundError(thread_id)
            if not thread.is_ai_thread:
                raise NotAIThreadError(thread_id)
            if thread.resolved:
                raise ThreadResolvedError(thread_id)
            if thread.ai_mode is not mode:
                self._threads.update_ai_thread_mode(self.document_id, thread.id, mode)

        self._threads.add_user_prompt(self.document_id, thread.id, prompt)
        pending = self._threads.add_ai_message(
            self.document_id, thread.id, PENDING_AI_MESSAGE, status=MessageStatus.PENDING
        )

        pack = self.context.build(
            include_full_doc=include_full_doc, fallback_selection=thread.highlighted_text
        )
        payload = {
            "mode": mode.value,
            "userPrompt": prompt,
            "context": pack.dump(),
            "brain": self._brains.get(self.project_id).dump(),
            "meta": RequestMeta(document_id=self.document_id, anchor_id=thread.id).dump(),
        }

        try:
            response = await self._protocol.ask(payload)
        except (ValidationError, ConfigurationError) as e:
            logger.warning("AI request rejected for thread %s: %s", thread.id, e)
            self._threads.update_ai_message(
                self.document_id, thread.id, pending.id, str(e), status=MessageStatus.ERROR
            )
        else:
            content = response.message
            if response.clarifying_question:
                content = f"{content}\n\n{response.clarifying_question}"
            self._threads.update_ai_message(
                self.document_id,
                thread.id,
                pending.id,
                content,
                status=MessageStatus.COMPLETE,
                proposed_text=response.proposed_text,
            )

        return self._threads.get(self.document_id, thread.id) or thread
