"""Comment and AI thread routes."""

import logging

from fastapi import APIRouter, HTTPException, status

from marginalia.api.deps import ThreadStoreDep
from marginalia.schemas.threads import (
    AIModeUpdate,
    AIThreadCreate,
    Message,
    MessageDeleteResponse,
    MessageUpdate,
    ReplyCreate,
    ResolveResponse,
    Thread,
    ThreadCreate,
)
from marginalia.store.threads import (
    MessageNotFoundError,
    NotAIThreadError,
    ThreadNotFoundError,
    ThreadResolvedError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents/{document_id}", tags=["threads"])


def _not_found(detail: str = "Thread not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


@router.get("/threads", response_model=list[Thread], response_model_exclude_none=True)
def list_threads(document_id: str, threads: ThreadStoreDep) -> list[Thread]:
    """List every thread of a document, oldest first."""
    return threads.list_for_document(document_id)


@router.post(
    "/threads",
    response_model=Thread,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_thread(document_id: str, data: ThreadCreate, threads: ThreadStoreDep) -> Thread:
    """
    Create a comment thread with its root message.

    The caller applies the comment mark to the content tree; a thread no mark
    references is removed by the next thread cleanup.
    """
    return threads.create(document_id, data.content, data.highlighted_text)


@router.post(
    "/ai-threads",
    response_model=Thread,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_ai_thread(document_id: str, data: AIThreadCreate, threads: ThreadStoreDep) -> Thread:
    return threads.create_ai_thread(document_id, data.highlighted_text, data.mode)


@router.get("/threads/{thread_id}", response_model=Thread, response_model_exclude_none=True)
def get_thread(document_id: str, thread_id: str, threads: ThreadStoreDep) -> Thread:
    thread = threads.get(document_id, thread_id)
    if thread is None:
        raise _not_found()
    return thread


@router.delete("/threads/{thread_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_thread(document_id: str, thread_id: str, threads: ThreadStoreDep) -> None:
    if not threads.delete(document_id, thread_id):
        raise _not_found()


@router.post(
    "/threads/{thread_id}/replies",
    response_model=Message,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def add_reply(
    document_id: str,
    thread_id: str,
    data: ReplyCreate,
    threads: ThreadStoreDep,
) -> Message:
    """Append a reply. Resolved threads must be reopened first."""
    try:
        return threads.add_reply(document_id, thread_id, data.content)
    except ThreadNotFoundError:
        raise _not_found()
    except ThreadResolvedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Thread is resolved; reopen it to reply",
        )


@router.post("/threads/{thread_id}/resolve", response_model=ResolveResponse)
def toggle_resolve(document_id: str, thread_id: str, threads: ThreadStoreDep) -> ResolveResponse:
    try:
        resolved = threads.toggle_resolve(document_id, thread_id)
    except ThreadNotFoundError:
        raise _not_found()
    return ResolveResponse(resolved=resolved)


@router.patch("/threads/{thread_id}/mode", response_model=Thread, response_model_exclude_none=True)
def update_ai_mode(
    document_id: str,
    thread_id: str,
    data: AIModeUpdate,
    threads: ThreadStoreDep,
) -> Thread:
    try:
        threads.update_ai_thread_mode(document_id, thread_id, data.mode)
    except ThreadNotFoundError:
        raise _not_found()
    except NotAIThreadError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only AI threads have a mode",
        )
    return threads.get(document_id, thread_id)


@router.patch(
    "/threads/{thread_id}/messages/{message_id}",
    response_model=Message,
    response_model_exclude_none=True,
)
def update_message(
    document_id: str,
    thread_id: str,
    message_id: str,
    data: MessageUpdate,
    threads: ThreadStoreDep,
) -> Message:
    try:
        return threads.update_message(document_id, thread_id, message_id, data.content)
    except ThreadNotFoundError:
        raise _not_found()
    except MessageNotFoundError:
        raise _not_found("Message not found")


@router.delete("/threads/{thread_id}/messages/{message_id}", response_model=MessageDeleteResponse)
def delete_message(
    document_id: str,
    thread_id: str,
    message_id: str,
    threads: ThreadStoreDep,
) -> MessageDeleteResponse:
    """Delete a message. Deleting the last message deletes the thread."""
    try:
        thread_deleted = threads.delete_message(document_id, thread_id, message_id)
    except ThreadNotFoundError:
        raise _not_found()
    except MessageNotFoundError:
        raise _not_found("Message not found")
    if thread_deleted:
        logger.info("Thread %s deleted with its last message", thread_id)
    return MessageDeleteResponse(thread_deleted=thread_deleted)
