from __future__ import annotations

import random
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..cards import Card
from ..dependencies import get_card_store, get_generation_flow, get_review_session
from ..flows import CardGenerationFlow, GenerationError
from ..logging import logger
from ..models.card import (
    AutofillRequest,
    CardDetails,
    CardIn,
    CardListResponse,
    CardOut,
    ExplainRequest,
    ExplainResponse,
    GenerateDeckRequest,
    ImportResponse,
    ShuffleResponse,
)
from ..portability import ImportFormatError, export_ai_dataset, export_deck, export_filename, parse_import_payload
from ..session import LastCardError, ReviewSession
from ..store import CardNotFoundError, CardSQLiteStore

router = APIRouter(tags=["cards"])


def _attachment(payload: Any, prefix: str) -> JSONResponse:
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(prefix)}"'},
    )


@router.get("", response_model=CardListResponse, summary="List every card in collection order")
def list_cards(store: CardSQLiteStore = Depends(get_card_store)) -> CardListResponse:
    cards = store.list_cards()
    return CardListResponse(items=[CardOut.from_card(c) for c in cards], total=len(cards))


@router.post("", response_model=CardOut, status_code=201, summary="Add a card (due immediately)")
def add_card(req: CardIn, store: CardSQLiteStore = Depends(get_card_store)) -> CardOut:
    card = Card.create(
        term=req.term,
        chinese_translation=req.chinese_translation or None,
        roots=req.roots or "N/A",
        synonyms=list(req.synonyms),
        layman=req.layman,
        example=req.example,
        sentences=list(req.sentences),
        definition=req.definition,
    )
    store.add(card)
    logger.info("card_added", card_id=card.id, term=card.term)
    return CardOut.from_card(card)


@router.post("/shuffle", response_model=ShuffleResponse, summary="Shuffle the collection order")
def shuffle_cards(store: CardSQLiteStore = Depends(get_card_store)) -> ShuffleResponse:
    ids = [c.id for c in store.list_cards()]
    random.shuffle(ids)
    store.replace_order(ids)
    return ShuffleResponse(ids=ids)


@router.post("/import", response_model=ImportResponse, summary="Import cards from a JSON deck")
def import_cards(
    payload: Any = Body(...),
    store: CardSQLiteStore = Depends(get_card_store),
) -> ImportResponse:
    try:
        cards = parse_import_payload(payload)
    except ImportFormatError as exc:
        logger.info("cards_import_rejected", reason=str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    count = store.add_many(cards)
    logger.info("cards_imported", count=count)
    return ImportResponse(imported=count, total=store.count())


@router.get("/export", summary="Export the full deck with scheduling state")
def export_cards(store: CardSQLiteStore = Depends(get_card_store)) -> JSONResponse:
    return _attachment(export_deck(store.list_cards()), "zoya_cards")


@router.get("/export/ai-dataset", summary="Export cards as input/output training pairs")
def export_cards_ai_dataset(store: CardSQLiteStore = Depends(get_card_store)) -> JSONResponse:
    return _attachment(export_ai_dataset(store.list_cards()), "zoya_ai_dataset")


@router.post("/generate", response_model=List[CardOut], summary="Generate a deck for a topic with AI")
def generate_deck(
    req: GenerateDeckRequest,
    store: CardSQLiteStore = Depends(get_card_store),
    flow: CardGenerationFlow = Depends(get_generation_flow),
) -> List[CardOut]:
    try:
        cards = flow.generate_deck(req.topic, req.count, req.language)
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to generate content: {exc}") from exc
    if req.save:
        store.add_many(cards)
    return [CardOut.from_card(c) for c in cards]


@router.post(
    "/autofill",
    response_model=CardDetails,
    response_model_by_alias=True,
    summary="Generate the content fields for a single term",
)
def autofill_card(req: AutofillRequest, flow: CardGenerationFlow = Depends(get_generation_flow)) -> CardDetails:
    try:
        return flow.generate_card_details(req.term.strip())
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to generate content: {exc}") from exc


@router.post("/explain", response_model=ExplainResponse, summary="One-sentence explanation or mnemonic")
def explain_term(req: ExplainRequest, flow: CardGenerationFlow = Depends(get_generation_flow)) -> ExplainResponse:
    return ExplainResponse(explanation=flow.enhance_explanation(req.term, req.context))


@router.get("/{card_id}", response_model=CardOut)
def get_card(card_id: str, store: CardSQLiteStore = Depends(get_card_store)) -> CardOut:
    card = store.get(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="card not found")
    return CardOut.from_card(card)


@router.delete("/{card_id}", status_code=204, summary="Delete a card")
def delete_card(
    card_id: str,
    session: ReviewSession = Depends(get_review_session),
) -> None:
    try:
        session.delete_card(card_id)
    except CardNotFoundError as exc:
        raise HTTPException(status_code=404, detail="card not found") from exc
    except LastCardError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
