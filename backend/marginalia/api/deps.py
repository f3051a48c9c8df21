"""
FastAPI dependencies.

Key patterns:
1. One persisted store per application, created in the lifespan and kept on
   `app.state`; collection wrappers are cheap and built per request.
2. The AI protocol is a process-wide singleton so its provider client is
   reused across requests.
3. Tests replace `get_store` and `get_ai_protocol` through
   `app.dependency_overrides`.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from marginalia.ai.protocol import AIRequestProtocol
from marginalia.config import get_settings
from marginalia.store import BrainStore, KeyValueStore, ThreadStore


def get_store(request: Request) -> KeyValueStore:
    """The application's persisted store."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store is not initialized",
        )
    return store


StoreDep = Annotated[KeyValueStore, Depends(get_store)]


def get_thread_store(store: StoreDep) -> ThreadStore:
    return ThreadStore(store)


def get_brain_store(store: StoreDep) -> BrainStore:
    return BrainStore(store)


@lru_cache
def get_ai_protocol() -> AIRequestProtocol:
    """Get cached AI protocol instance."""
    return AIRequestProtocol(get_settings())


# Type aliases for dependency injection
ThreadStoreDep = Annotated[ThreadStore, Depends(get_thread_store)]
BrainStoreDep = Annotated[BrainStore, Depends(get_brain_store)]
AIProtocolDep = Annotated[AIRequestProtocol, Depends(get_ai_protocol)]
