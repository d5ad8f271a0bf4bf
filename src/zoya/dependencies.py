"""FastAPI dependencies shared by the routers.

Tests swap these out through ``app.dependency_overrides``.
"""
from __future__ import annotations

import threading

from .flows import CardGenerationFlow
from .providers import get_llm_provider
from .session import ReviewSession
from .store import CardSQLiteStore, get_store

_session: ReviewSession | None = None
_session_lock = threading.Lock()


def get_card_store() -> CardSQLiteStore:
    return get_store()


def get_review_session() -> ReviewSession:
    """Single review session shared by every request (single-user app)."""
    global _session
    with _session_lock:
        store = get_store()
        if _session is None or _session.store is not store:
            _session = ReviewSession(store)
        return _session


def get_generation_flow() -> CardGenerationFlow:
    return CardGenerationFlow(llm=get_llm_provider())


def reset_review_session() -> None:
    global _session
    with _session_lock:
        _session = None
