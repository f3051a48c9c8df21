"""Persisted store and the collections built on it."""

from marginalia.store.base import KeyValueStore, MemoryStore
from marginalia.store.brains import BrainStore
from marginalia.store.documents import DocumentStore
from marginalia.store.sql import SqlStore
from marginalia.store.threads import (
    MessageNotFoundError,
    NotAIThreadError,
    ThreadNotFoundError,
    ThreadResolvedError,
    ThreadStore,
)

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SqlStore",
    "ThreadStore",
    "BrainStore",
    "DocumentStore",
    "ThreadNotFoundError",
    "MessageNotFoundError",
    "NotAIThreadError",
    "ThreadResolvedError",
]
