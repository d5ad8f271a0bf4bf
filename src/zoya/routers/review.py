from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..dependencies import get_card_store, get_review_session
from ..models.card import CardOut
from ..models.review import (
    DueCardsResponse,
    ReviewGradeRequest,
    ReviewGradeResponse,
    ReviewSessionResponse,
    ReviewStatsResponse,
)
from ..session import NothingDueError, ReviewSession, SessionNotActiveError
from ..srs import get_due_cards
from ..store import CardNotFoundError, CardSQLiteStore

router = APIRouter(tags=["review"])


def _session_view(session: ReviewSession) -> ReviewSessionResponse:
    current = session.current
    return ReviewSessionResponse(
        state=session.state.value,
        position=session.position,
        remaining=len(session.queue),
        current=CardOut.from_card(current) if current is not None else None,
    )


@router.get("/due", response_model=DueCardsResponse, summary="Cards due now, most overdue first")
def review_due(store: CardSQLiteStore = Depends(get_card_store)) -> DueCardsResponse:
    due = get_due_cards(store.list_cards())
    return DueCardsResponse(items=[CardOut.from_card(c) for c in due], count=len(due))


@router.post("/start", response_model=ReviewSessionResponse, summary="Start a review session over the due cards")
def review_start(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    try:
        session.start()
    except NothingDueError as exc:
        raise HTTPException(status_code=409, detail="No cards due for review!") from exc
    return _session_view(session)


@router.get("/session", response_model=ReviewSessionResponse, summary="Current session state")
def review_session(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    return _session_view(session)


@router.post("/grade", response_model=ReviewGradeResponse, summary="Grade the current card and schedule its next review")
def review_grade(req: ReviewGradeRequest, session: ReviewSession = Depends(get_review_session)) -> ReviewGradeResponse:
    try:
        outcome = session.grade(req.grade)
    except SessionNotActiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except CardNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ReviewGradeResponse(
        card=CardOut.from_card(outcome.card),
        requeued=outcome.requeued,
        completed=outcome.completed,
        remaining=outcome.remaining,
        next_review_date=outcome.card.next_review_date,
        session=_session_view(session),
    )


@router.post("/next", response_model=ReviewSessionResponse)
def review_next(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    try:
        session.next()
    except SessionNotActiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _session_view(session)


@router.post("/previous", response_model=ReviewSessionResponse)
def review_previous(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    try:
        session.previous()
    except SessionNotActiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _session_view(session)


@router.post("/shuffle", response_model=ReviewSessionResponse)
def review_shuffle(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    try:
        session.shuffle()
    except SessionNotActiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _session_view(session)


@router.post("/exit", response_model=ReviewSessionResponse, summary="Leave the session; progress is already saved")
def review_exit(session: ReviewSession = Depends(get_review_session)) -> ReviewSessionResponse:
    session.exit()
    return _session_view(session)


@router.get("/stats", response_model=ReviewStatsResponse, summary="Due count, reviews today and recent cards")
def review_stats(store: CardSQLiteStore = Depends(get_card_store)) -> ReviewStatsResponse:
    due_now, reviewed_today = store.get_stats()
    recent = store.get_recent_reviewed(limit=settings.review_stats_recent_limit)
    return ReviewStatsResponse(
        due_now=due_now,
        reviewed_today=reviewed_today,
        recent=[CardOut.from_card(c) for c in recent],
    )
