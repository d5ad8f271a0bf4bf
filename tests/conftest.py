"""Pytest configuration: network-free settings and an isolated card store."""

import os
import sys
from pathlib import Path

import pytest

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

# Settings are read at import time; keep tests away from OpenAI and the real database.
os.environ.setdefault("LLM_PROVIDER", "local")
os.environ.setdefault("STRICT_MODE", "false")
os.environ.setdefault("SEED_ON_EMPTY", "false")
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("SENTRY_DSN", None)


@pytest.fixture()
def store(tmp_path):
    from zoya.store import CardSQLiteStore

    return CardSQLiteStore(str(tmp_path / "cards.sqlite3"), seed=False)


@pytest.fixture()
def make_card():
    from zoya.cards import Card

    def _make(term: str = "Term", **fields):
        fields.setdefault("now", 1_000)
        return Card.create(term=term, **fields)

    return _make
