"""Small shared helpers."""

import time
from uuid import uuid4


def generate_id() -> str:
    """Return a new opaque identifier for threads, messages and documents."""
    return uuid4().hex


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
