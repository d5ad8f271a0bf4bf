from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from .cards import Card
from .logging import logger
from .srs import Grade, calculate_next_review, coerce_grade, get_due_cards, now_ms
from .store import CardNotFoundError, CardSQLiteStore


class SessionState(str, Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"
    COMPLETE = "complete"


class NothingDueError(Exception):
    """Raised by :meth:`ReviewSession.start` when no card is due."""


class SessionNotActiveError(Exception):
    """Raised when a reviewing-only action is attempted outside a session."""


class LastCardError(Exception):
    """Raised when deleting would leave the collection empty outside a session."""


@dataclass
class GradeOutcome:
    card: Card
    grade: Grade
    requeued: bool
    completed: bool
    remaining: int


class ReviewSession:
    """Review loop over the cards due when the session started.

    Idle -> Reviewing -> Complete -> Idle. A graded card is written back to
    the store before the queue changes. A lapse keeps the card in the queue
    and moves on to the next one; any other grade removes it.
    """

    def __init__(self, store: CardSQLiteStore, *, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self._clock = clock
        self._lock = threading.RLock()
        self.state = SessionState.IDLE
        self.queue: List[Card] = []
        self.position = 0

    @property
    def active(self) -> bool:
        return self.state is SessionState.REVIEWING

    @property
    def current(self) -> Optional[Card]:
        if not self.active or not self.queue:
            return None
        return self.queue[self.position]

    def start(self) -> List[Card]:
        with self._lock:
            due = get_due_cards(self.store.list_cards(), now=self._clock())
            if not due:
                logger.info("session_start_refused", reason="nothing_due")
                raise NothingDueError("No cards due for review")
            self.queue = due
            self.position = 0
            self.state = SessionState.REVIEWING
            logger.info("session_started", due=len(due))
            return list(due)

    def _require_active(self) -> None:
        if not self.active:
            raise SessionNotActiveError("No review session in progress")

    def grade(self, grade: Any) -> GradeOutcome:
        g = coerce_grade(grade)
        with self._lock:
            self._require_active()
            card = self.queue[self.position]
            updated = calculate_next_review(card, g, now=self._clock())
            if not self.store.save(updated):
                # deleted behind the session's back
                self._drop(self.position)
                raise CardNotFoundError(f"card {card.id!r} no longer exists")
            self.store.record_review(updated, g, reviewed_at=self._clock())

            requeued = g is Grade.AGAIN
            if requeued:
                self.queue[self.position] = updated
                self.position = (self.position + 1) % len(self.queue)
            else:
                self._drop(self.position)
            completed = not self.active
            logger.info(
                "review_graded",
                card_id=updated.id,
                grade=g.name,
                interval=updated.interval,
                repetition=updated.repetition,
                ease_factor=updated.ease_factor,
                next_review_date=updated.next_review_date,
                requeued=requeued,
                remaining=len(self.queue),
            )
            return GradeOutcome(
                card=updated,
                grade=g,
                requeued=requeued,
                completed=completed,
                remaining=len(self.queue),
            )

    def _drop(self, index: int) -> None:
        self.queue.pop(index)
        if not self.queue:
            self.state = SessionState.COMPLETE
            logger.info("session_complete")
            self._clear()
            return
        if self.position >= len(self.queue):
            self.position = 0

    def remove(self, card_id: str | int) -> bool:
        """Drop a card (e.g. after deletion) from the remaining queue."""
        with self._lock:
            if not self.active:
                return False
            for idx, card in enumerate(self.queue):
                if str(card.id) == str(card_id):
                    if idx < self.position:
                        self.position -= 1
                    self._drop(idx)
                    return True
            return False

    def delete_card(self, card_id: str | int) -> None:
        """Delete a card from the store and from the remaining queue.

        The last card of the collection can only go while a session is
        running. Check, delete and queue removal run under the session lock.
        """
        with self._lock:
            if self.store.get(card_id) is None:
                raise CardNotFoundError(f"card {card_id!r} not found")
            if self.store.count() <= 1 and not self.active:
                raise LastCardError("Cannot delete the last card.")
            self.store.delete(card_id)
            self.remove(card_id)
            logger.info("card_deleted", card_id=card_id, in_session=self.active)

    def next(self) -> Optional[Card]:
        with self._lock:
            self._require_active()
            self.position = (self.position + 1) % len(self.queue)
            return self.current

    def previous(self) -> Optional[Card]:
        with self._lock:
            self._require_active()
            self.position = len(self.queue) - 1 if self.position == 0 else self.position - 1
            return self.current

    def shuffle(self, rng: Optional[random.Random] = None) -> List[Card]:
        with self._lock:
            self._require_active()
            (rng or random).shuffle(self.queue)
            self.position = 0
            return list(self.queue)

    def exit(self) -> None:
        with self._lock:
            if self.active:
                logger.info("session_exited", remaining=len(self.queue))
            self._clear()

    def _clear(self) -> None:
        self.queue = []
        self.position = 0
        self.state = SessionState.IDLE
