from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .cards import STARTER_CARD, Card, card_from_dict, card_to_dict
from .config import settings
from .logging import logger
from .srs import Grade, now_ms


class CardNotFoundError(LookupError):
    pass


class CardSQLiteStore:
    """SQLite-backed card collection with review history.

    - each card is stored as its JSON deck entry; ``next_review_date`` is
      mirrored into an indexed column for due counts
    - ``position`` keeps the collection order (insertion order, or the last
      persisted shuffle)
    - writes to a card are last-write-wins; callers serialise grading
    """

    def __init__(self, db_path: str, *, seed: bool = True) -> None:
        self.db_path = db_path
        self._ensure_dirs()
        self._init_db()
        if seed:
            self._seed_if_empty()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        with conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS cards (
                        id TEXT PRIMARY KEY,
                        position INTEGER NOT NULL,
                        data TEXT NOT NULL,
                        next_review_date INTEGER NOT NULL DEFAULT 0,
                        created_at INTEGER NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS reviews (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        card_id TEXT NOT NULL,
                        reviewed_at INTEGER NOT NULL,
                        grade INTEGER NOT NULL,
                        ease_factor REAL NOT NULL,
                        interval INTEGER NOT NULL,
                        next_review_date INTEGER NOT NULL,
                        FOREIGN KEY(card_id) REFERENCES cards(id) ON DELETE CASCADE
                    );
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_position ON cards(position);")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_next_review ON cards(next_review_date);")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_reviews_reviewed_at ON reviews(reviewed_at);")
        finally:
            conn.close()

    def _seed_if_empty(self) -> None:
        if self.count() > 0:
            return
        self.add(card_from_dict(STARTER_CARD))
        logger.info("cards_seeded", db_path=self.db_path, count=1)

    @staticmethod
    def _key(card_id: str | int) -> str:
        return str(card_id)

    @staticmethod
    def _row_to_card(row: sqlite3.Row) -> Card:
        return card_from_dict(json.loads(row["data"]))

    @staticmethod
    def _row_values(card: Card) -> Tuple[str, str, int, int]:
        return (
            CardSQLiteStore._key(card.id),
            json.dumps(card_to_dict(card), ensure_ascii=False),
            int(card.next_review_date or 0),
            int(card.created_at),
        )

    # --- collection ---
    def count(self) -> int:
        conn = self._connect()
        try:
            row = conn.execute("SELECT COUNT(1) AS c FROM cards;").fetchone()
            return int(row["c"])
        finally:
            conn.close()

    def list_cards(self) -> List[Card]:
        conn = self._connect()
        try:
            cur = conn.execute("SELECT data FROM cards ORDER BY position ASC, created_at ASC;")
            return [self._row_to_card(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def get(self, card_id: str | int) -> Optional[Card]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT data FROM cards WHERE id = ?;", (self._key(card_id),)).fetchone()
            if row is None:
                return None
            return self._row_to_card(row)
        finally:
            conn.close()

    def add(self, card: Card) -> None:
        self.add_many([card])

    def add_many(self, cards: Iterable[Card]) -> int:
        """Append cards to the end of the collection; existing ids are overwritten in place."""
        values = [self._row_values(c) for c in cards]
        if not values:
            return 0
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            row = conn.execute("SELECT COALESCE(MAX(position), -1) AS p FROM cards;").fetchone()
            next_pos = int(row["p"]) + 1
            for key, data, due, created in values:
                conn.execute(
                    """
                    INSERT INTO cards(id, position, data, next_review_date, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        data = excluded.data,
                        next_review_date = excluded.next_review_date;
                    """,
                    (key, next_pos, data, due, created),
                )
                next_pos += 1
            conn.execute("COMMIT;")
            return len(values)
        except Exception:
            conn.execute("ROLLBACK;")
            raise
        finally:
            conn.close()

    def save(self, card: Card) -> bool:
        """Write back an existing card. Returns False if it was deleted meanwhile."""
        key, data, due, _ = self._row_values(card)
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    "UPDATE cards SET data = ?, next_review_date = ? WHERE id = ?;",
                    (data, due, key),
                )
                return cur.rowcount > 0
        finally:
            conn.close()

    def delete(self, card_id: str | int) -> bool:
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute("DELETE FROM cards WHERE id = ?;", (self._key(card_id),))
                return cur.rowcount > 0
        finally:
            conn.close()

    def replace_order(self, card_ids: Sequence[str | int]) -> None:
        """Persist a new collection order. Ids not listed keep their relative order after the listed ones."""
        keys = [self._key(cid) for cid in card_ids]
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            existing = [r["id"] for r in conn.execute("SELECT id FROM cards ORDER BY position ASC, created_at ASC;")]
            known = set(existing)
            listed = list(dict.fromkeys(k for k in keys if k in known))
            seen = set(listed)
            ordered = listed + [k for k in existing if k not in seen]
            for pos, key in enumerate(ordered):
                conn.execute("UPDATE cards SET position = ? WHERE id = ?;", (pos, key))
            conn.execute("COMMIT;")
        except Exception:
            conn.execute("ROLLBACK;")
            raise
        finally:
            conn.close()

    # --- review history & stats ---
    def record_review(self, card: Card, grade: Grade, reviewed_at: Optional[int] = None) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO reviews(card_id, reviewed_at, grade, ease_factor, interval, next_review_date)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        self._key(card.id),
                        reviewed_at if reviewed_at is not None else now_ms(),
                        int(grade),
                        float(card.ease_factor),
                        int(card.interval),
                        int(card.next_review_date),
                    ),
                )
        finally:
            conn.close()

    def get_stats(self, now: Optional[int] = None) -> Tuple[int, int]:
        """Return (due_now_count, reviewed_today_count).

        - due_now_count: cards never scheduled or due at ``now``
        - reviewed_today_count: reviews since 00:00 UTC of ``now``'s day
        """
        current = now if now is not None else now_ms()
        day = datetime.fromtimestamp(current / 1000, tz=timezone.utc)
        today_start = int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp() * 1000)
        conn = self._connect()
        try:
            cur1 = conn.execute(
                "SELECT COUNT(1) AS c FROM cards WHERE next_review_date <= ?;",
                (current,),
            )
            due_now = int(cur1.fetchone()["c"])
            cur2 = conn.execute("SELECT COUNT(1) AS c FROM reviews WHERE reviewed_at >= ?;", (today_start,))
            reviewed_today = int(cur2.fetchone()["c"])
            return due_now, reviewed_today
        finally:
            conn.close()

    def get_recent_reviewed(self, limit: int = 5) -> List[Card]:
        """Most recently reviewed distinct cards, newest first."""
        conn = self._connect()
        try:
            cur = conn.execute(
                """
                SELECT c.data
                FROM cards c
                JOIN (
                    SELECT card_id, MAX(id) AS last_review
                    FROM reviews
                    GROUP BY card_id
                ) r ON r.card_id = c.id
                ORDER BY r.last_review DESC
                LIMIT ?;
                """,
                (limit,),
            )
            return [self._row_to_card(row) for row in cur.fetchall()]
        finally:
            conn.close()


_store: CardSQLiteStore | None = None


def get_store() -> CardSQLiteStore:
    """Return the process-wide store wired to settings, creating it on first use."""
    global _store
    if _store is None:
        _store = CardSQLiteStore(db_path=settings.cards_db_path, seed=settings.seed_on_empty)
    return _store


def set_store(store: CardSQLiteStore | None) -> None:
    global _store
    _store = store
