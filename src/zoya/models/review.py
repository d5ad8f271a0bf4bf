from typing import List, Optional

from pydantic import BaseModel, Field, StrictInt

from .card import CardOut


class DueCardsResponse(BaseModel):
    """Cards due right now: never-scheduled first, then most overdue."""

    items: List[CardOut]
    count: int


class ReviewSessionResponse(BaseModel):
    state: str
    position: int
    remaining: int
    current: Optional[CardOut] = None


class ReviewGradeRequest(BaseModel):
    """Grade for the current card.

    - grade: 0=again, 1=hard, 2=good, 3=easy
    """

    grade: StrictInt = Field(ge=0, le=3)


class ReviewGradeResponse(BaseModel):
    card: CardOut
    requeued: bool
    completed: bool
    remaining: int
    next_review_date: int
    session: ReviewSessionResponse


class ReviewStatsResponse(BaseModel):
    """Progress overview.

    - due_now: cards due at this moment
    - reviewed_today: reviews recorded since 00:00 UTC
    - recent: most recently reviewed cards
    """

    due_now: int
    reviewed_today: int
    recent: List[CardOut] = []
