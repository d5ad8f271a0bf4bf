"""Read card text aloud.

A request names either free ``text`` (e.g. a selection from a card) or a
stored card plus the face to read (``term`` by default). Audio is
synthesised with OpenAI TTS and streamed back as MP3.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Iterator, Literal, Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..cards import Card
from ..config import settings
from ..dependencies import get_card_store
from ..logging import logger
from ..store import CardSQLiteStore

try:
    from openai import (  # type: ignore
        APIConnectionError,
        APIError,
        APIStatusError,
        AuthenticationError,
        BadRequestError,
        OpenAI,
        RateLimitError,
    )
except ImportError:  # pragma: no cover - speech is disabled without the SDK
    APIConnectionError = APIError = APIStatusError = AuthenticationError = (
        BadRequestError
    ) = RateLimitError = None  # type: ignore[assignment]
    OpenAI = None  # type: ignore[assignment]


TTS_TEXT_MAX_LENGTH = 500

CardFace = Literal["term", "translation", "layman", "example", "definition", "sentences"]

router = APIRouter(prefix="/api/tts", tags=["tts"])

_CLIENT_LOCK = threading.Lock()
client: Any | None = None


class SpeechRequest(BaseModel):
    """What to read: free text, or one face of a stored card."""

    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(default=None, min_length=1, max_length=TTS_TEXT_MAX_LENGTH)
    card_id: Optional[Union[str, int]] = Field(default=None, alias="cardId")
    face: CardFace = "term"
    voice: Optional[str] = None


def _too_long(chars: int) -> HTTPException:
    return HTTPException(
        status_code=413,
        detail={
            "error": "tts_text_too_long",
            "message": f"Text to speak must be at most {TTS_TEXT_MAX_LENGTH} characters.",
            "max_length": TTS_TEXT_MAX_LENGTH,
            "text_chars": chars,
        },
    )


def _invalid(msg: str, loc: tuple[str, ...] = ("body",)) -> RequestValidationError:
    return RequestValidationError([{"type": "value_error", "loc": loc, "msg": msg, "input": None}])


def _parse_request(payload: Any) -> SpeechRequest:
    try:
        req = SpeechRequest.model_validate(payload)
    except ValidationError as exc:
        for err in exc.errors():
            if err.get("type") == "string_too_long" and tuple(err.get("loc", ())) == ("text",):
                raise _too_long(len(payload.get("text", ""))) from exc
        raise RequestValidationError(exc.errors()) from exc
    if (req.text is None) == (req.card_id is None):
        raise _invalid("give either text or cardId")
    if req.text is not None and not req.text.strip():
        raise _invalid("text is blank", ("body", "text"))
    return req


def card_face_text(card: Card, face: str) -> str:
    """The words shown on ``face`` of ``card``, ready to be spoken."""
    if face == "translation":
        return card.chinese_translation or ""
    if face == "sentences":
        return " ".join(s.strip() for s in card.sentences if s.strip())
    return str(getattr(card, face) or "")


def _resolve_text(req: SpeechRequest, store: CardSQLiteStore) -> str:
    if req.text is not None:
        return req.text
    card = store.get(req.card_id)  # type: ignore[arg-type]
    if card is None:
        raise HTTPException(status_code=404, detail="card not found")
    text = card_face_text(card, req.face).strip()
    if not text:
        raise _invalid(f"card has no {req.face} to read", ("body", "face"))
    if len(text) > TTS_TEXT_MAX_LENGTH:
        raise _too_long(len(text))
    return text


def _init_client() -> Any | None:
    if OpenAI is None or not settings.openai_api_key:  # pragma: no cover
        return None
    return OpenAI(api_key=settings.openai_api_key)


def _tts_client() -> Any | None:
    global client
    if client is None:
        with _CLIENT_LOCK:
            if client is None:
                client = _init_client()
    return client


def _map_openai_exception(exc: Exception) -> tuple[int, str, str]:
    """(status, detail, reason) for a failed synthesis call."""
    checks = (
        (AuthenticationError, 502, "OpenAI authentication failed", "authentication_error"),
        (RateLimitError, 429, "OpenAI rate limit exceeded", "rate_limit"),
        (BadRequestError, 400, "Invalid text-to-speech request", "bad_request"),
        (APIConnectionError, 502, "OpenAI connection error", "connection_error"),
        (APIStatusError, 502, "OpenAI returned an error response", "api_status_error"),
        (APIError, 502, "OpenAI API error", "api_error"),
    )
    for exc_type, status_code, detail, reason in checks:
        if exc_type is not None and isinstance(exc, exc_type):
            return status_code, detail, reason
    return 500, "Text-to-speech failed", "unexpected_error"


@router.post("", response_class=StreamingResponse)
def speak(
    request: Request,
    payload: Any = Body(...),
    store: CardSQLiteStore = Depends(get_card_store),
) -> StreamingResponse:
    """Stream MP3 audio for free text or a card face."""
    t0 = time.perf_counter()
    request_id = getattr(request.state, "request_id", None)

    try:
        req = _parse_request(payload)
        text = _resolve_text(req, store)
    except HTTPException as exc:
        card_id = payload.get("cardId") if isinstance(payload, dict) else None
        logger.warning("tts_request_rejected", status_code=exc.status_code, card_id=card_id)
        raise

    voice = req.voice or settings.tts_voice
    source = "text" if req.text is not None else f"card:{req.face}"
    logger.info("tts_request", source=source, card_id=req.card_id, voice=voice, text_chars=len(text))

    client_instance = _tts_client()
    if client_instance is None:
        logger.error("tts_client_unavailable", reason="missing_sdk_or_api_key")
        raise HTTPException(status_code=500, detail="OpenAI client is not configured")

    try:
        audio = client_instance.audio.speech.create(
            model=settings.tts_model,
            voice=voice,
            input=text,
            response_format="mp3",
        )
    except Exception as exc:
        status_code, detail, reason = _map_openai_exception(exc)
        logger.warning("tts_request_failed", source=source, voice=voice, reason=reason, error=str(exc))
        raise HTTPException(status_code=status_code, detail=detail) from exc

    def stream() -> Iterator[bytes]:
        sent = 0
        try:
            for chunk in audio.iter_bytes():
                sent += len(chunk)
                yield chunk
        finally:
            close = getattr(audio, "close", None)
            if callable(close):
                close()
            logger.info(
                "tts_stream_complete",
                request_id=request_id,
                source=source,
                streamed_bytes=sent,
                duration_ms=round((time.perf_counter() - t0) * 1000, 2),
            )

    return StreamingResponse(stream(), media_type="audio/mpeg")
