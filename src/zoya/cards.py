from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .srs import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR, ReviewItem, now_ms


@dataclass
class Card(ReviewItem):
    """A flashcard: study content plus its scheduling state."""

    term: str = ""
    chinese_translation: Optional[str] = None
    roots: str = "N/A"
    synonyms: List[str] = field(default_factory=list)
    layman: str = ""
    example: str = ""
    sentences: List[str] = field(default_factory=list)
    definition: str = ""


def card_to_dict(card: Card) -> dict[str, Any]:
    """Serialize a card into the camelCase shape used by the JSON deck format."""
    return {
        "id": card.id,
        "term": card.term,
        "chineseTranslation": card.chinese_translation,
        "roots": card.roots,
        "synonyms": list(card.synonyms),
        "layman": card.layman,
        "example": card.example,
        "sentences": list(card.sentences),
        "definition": card.definition,
        "nextReviewDate": card.next_review_date,
        "interval": card.interval,
        "repetition": card.repetition,
        "easeFactor": card.ease_factor,
        "createdAt": card.created_at,
    }


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _non_negative_int(data: Mapping[str, Any], key: str) -> int:
    value = int(data.get(key) or 0)
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {value}")
    return value


def _ease_factor(data: Mapping[str, Any]) -> float:
    value = float(data.get("easeFactor") or DEFAULT_EASE_FACTOR)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"easeFactor must be a positive number, got {value}")
    return max(value, MIN_EASE_FACTOR)


def card_from_dict(data: Mapping[str, Any], *, now: Optional[int] = None) -> Card:
    """Build a card from a JSON deck entry, defaulting anything missing.

    Falsy values fall back to the new-card defaults, so ``easeFactor: 0`` or
    ``nextReviewDate: null`` produce a card that is due immediately.

    Scheduling state is checked on the way in:

    - negative ``interval``/``repetition``/``nextReviewDate`` raise ``ValueError``
    - ``easeFactor`` below the 1.3 floor is raised to it
    - a streak without an interval (``repetition > 0``, ``interval < 1``)
      cannot be continued, so the card restarts as a new card
    """
    created = now if now is not None else now_ms()
    raw_id = data.get("id")
    if raw_id is None or raw_id == "":
        raw_id = uuid.uuid4().hex
    translation = data.get("chineseTranslation")

    interval = _non_negative_int(data, "interval")
    repetition = _non_negative_int(data, "repetition")
    next_review_date = _non_negative_int(data, "nextReviewDate")
    if repetition > 0 and interval < 1:
        interval, repetition, next_review_date = 0, 0, 0

    return Card(
        id=raw_id,
        term=str(data.get("term") or ""),
        chinese_translation=str(translation) if translation else None,
        roots=str(data.get("roots") or "N/A"),
        synonyms=_str_list(data.get("synonyms")),
        layman=str(data.get("layman") or ""),
        example=str(data.get("example") or ""),
        sentences=_str_list(data.get("sentences")),
        definition=str(data.get("definition") or ""),
        next_review_date=next_review_date,
        interval=interval,
        repetition=repetition,
        ease_factor=_ease_factor(data),
        created_at=int(data.get("createdAt") or created),
    )


STARTER_CARD: dict[str, Any] = {
    "id": 1,
    "term": "Opportunity Cost (机会成本)",
    "chineseTranslation": "机会成本",
    "roots": "Latin: opportunitas (fitness, convenience) + cost (price)",
    "synonyms": ["Trade-off", "Alternative cost", "Sacrifice"],
    "layman": (
        "鱼和熊掌不可兼得。当你决定把资源 (resources) 用在一件事上时，"
        "你被迫放弃的其他选择中价值最高的那一个，就是你的成本 (cost)。"
    ),
    "example": (
        "你今晚花2小时刷抖音 (scrolling TikTok)。这2小时原本可以用来去健身房 (gym) "
        "或者学习代码 (coding)。那么，你练出的肌肉或学到的知识，就是你刷抖音的机会成本。"
    ),
    "sentences": [
        "Every financial decision involves an opportunity cost.",
        "The opportunity cost of going to college is the income you could have earned by working.",
    ],
    "definition": (
        "The potential benefits that an individual, investor, or business misses out on "
        "when choosing one alternative over another."
    ),
}
