"""JSON deck import and export.

Two import shapes are accepted: a bare array of card objects, or an object
carrying the array under ``cards`` (the shape :func:`export_deck` writes).
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from .cards import Card, card_from_dict, card_to_dict
from .srs import now_ms

EXPORT_VERSION = "1.0"


class ImportFormatError(ValueError):
    pass


def parse_import_payload(payload: Any, *, now: Optional[int] = None) -> List[Card]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ImportFormatError("Invalid JSON format") from exc

    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict) and isinstance(payload.get("cards"), list):
        entries = payload["cards"]
    else:
        raise ImportFormatError("Expected a JSON array of cards or an object with a 'cards' array")

    created = now if now is not None else now_ms()
    cards: List[Card] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ImportFormatError(f"Card at index {index} is not an object")
        try:
            cards.append(card_from_dict(entry, now=created))
        except (TypeError, ValueError) as exc:
            raise ImportFormatError(f"Card at index {index} has invalid fields: {exc}") from exc
    if not cards:
        raise ImportFormatError("No valid cards found")
    return cards


def _iso(now: Optional[int]) -> str:
    current = now if now is not None else now_ms()
    return datetime.fromtimestamp(current / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def export_deck(cards: Sequence[Card], *, now: Optional[int] = None) -> dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "exportedAt": _iso(now),
        "cards": [card_to_dict(c) for c in cards],
    }


def _term_label(card: Card) -> str:
    if card.chinese_translation:
        return f"{card.term} ({card.chinese_translation})"
    return card.term


def export_ai_dataset(cards: Sequence[Card]) -> List[dict[str, str]]:
    """Instruction-tuning pairs, one per card."""
    rows = []
    for card in cards:
        label = _term_label(card)
        rows.append(
            {
                "input_text": f'Explain the term "{label}"',
                "output_text": (
                    f"Term: {label}\n"
                    f"Roots: {card.roots}\n"
                    f"Layman Explanation: {card.layman}\n"
                    f"Example: {card.example}\n"
                    f"Definition: {card.definition}"
                ),
            }
        )
    return rows


def export_filename(prefix: str = "zoya_cards", *, now: Optional[int] = None) -> str:
    return f"{prefix}_{_iso(now)[:10]}.json"
