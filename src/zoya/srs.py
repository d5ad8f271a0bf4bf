"""SM-2 spaced repetition scheduling.

Adapted SuperMemo-2 on a four-level grade scale:

- grade: 0=again (lapse), 1=hard, 2=good, 3=easy
- hard/good/easy map onto SM-2 quality 3/4/5 for the ease update
- a lapse resets the streak and leaves the ease factor untouched
- ease factor has a floor of 1.3 and no ceiling

Both operations are pure: they never mutate their inputs and never touch
storage. ``now`` is epoch milliseconds and may be passed explicitly.
"""
from __future__ import annotations

import dataclasses
import math
import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, List, Optional, TypeVar, Union


DAY_IN_MS = 24 * 60 * 60 * 1000
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class Grade(IntEnum):
    AGAIN = 0  # forgot, restart
    HARD = 1  # remembered with difficulty
    GOOD = 2  # remembered with hesitation
    EASY = 3  # remembered instantly


_SM2_QUALITY = {
    Grade.AGAIN: 0,
    Grade.HARD: 3,
    Grade.GOOD: 4,
    Grade.EASY: 5,
}


class InvalidGradeError(ValueError):
    """Raised when a value outside the four grades reaches the scheduler."""


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ReviewItem:
    id: Union[str, int]
    interval: int = 0
    repetition: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    next_review_date: int = 0
    created_at: int = field(default_factory=now_ms)

    @classmethod
    def create(cls, id: Union[str, int, None] = None, *, now: Optional[int] = None, **fields: Any):
        """Build a brand-new, never-scheduled item.

        Scheduling fields always start from the defaults; ``fields`` only
        carries content attributes of subclasses.
        """
        return cls(
            id=id if id is not None else uuid.uuid4().hex,
            interval=0,
            repetition=0,
            ease_factor=DEFAULT_EASE_FACTOR,
            next_review_date=0,
            created_at=now if now is not None else now_ms(),
            **fields,
        )


T = TypeVar("T", bound=ReviewItem)


def coerce_grade(grade: Any) -> Grade:
    """Return ``grade`` as a :class:`Grade` or raise :class:`InvalidGradeError`."""
    if isinstance(grade, Grade):
        return grade
    # bool is an int subclass; True must not silently become HARD
    if isinstance(grade, bool) or not isinstance(grade, int):
        raise InvalidGradeError(f"grade must be one of 0-3, got {grade!r}")
    try:
        return Grade(grade)
    except ValueError as exc:
        raise InvalidGradeError(f"grade must be one of 0-3, got {grade!r}") from exc


def sm2_quality(grade: Any) -> int:
    return _SM2_QUALITY[coerce_grade(grade)]


def next_ease_factor(ease_factor: float, grade: Any) -> float:
    """EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), floored at 1.3.

    Returns ``ease_factor`` unchanged for a lapse.
    """
    g = coerce_grade(grade)
    if g is Grade.AGAIN:
        return ease_factor
    q = _SM2_QUALITY[g]
    updated = ease_factor + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    if updated < MIN_EASE_FACTOR:
        updated = MIN_EASE_FACTOR
    return updated


def _round_half_away_from_zero(value: float) -> int:
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def calculate_next_review(item: T, grade: Any, now: Optional[int] = None) -> T:
    """Grade ``item`` and return an updated copy with its next due time."""
    g = coerce_grade(grade)
    current = now if now is not None else now_ms()

    interval = item.interval or 0
    repetition = item.repetition or 0
    ease_factor = item.ease_factor if item.ease_factor else DEFAULT_EASE_FACTOR

    if g is Grade.AGAIN:
        repetition = 0
        interval = 1
    else:
        if repetition == 0:
            interval = 1
        elif repetition == 1:
            interval = 6
        else:
            # never below one day, even for hand-edited state
            interval = max(1, _round_half_away_from_zero(interval * ease_factor))
        repetition += 1
        ease_factor = next_ease_factor(ease_factor, g)

    return dataclasses.replace(
        item,
        interval=interval,
        repetition=repetition,
        ease_factor=ease_factor,
        next_review_date=current + interval * DAY_IN_MS,
    )


def is_due(item: ReviewItem, now: Optional[int] = None) -> bool:
    if not item.next_review_date:
        return True
    current = now if now is not None else now_ms()
    return item.next_review_date <= current


def get_due_cards(items: Iterable[T], now: Optional[int] = None) -> List[T]:
    """Return the items due at ``now``: unscheduled first, then most overdue.

    Ties keep collection order.
    """
    current = now if now is not None else now_ms()
    due = [it for it in items if is_due(it, current)]
    return sorted(due, key=lambda it: it.next_review_date or 0)
