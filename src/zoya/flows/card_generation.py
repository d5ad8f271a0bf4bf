from __future__ import annotations

import json
import re
from typing import Any, List, Optional

from pydantic import ValidationError

from ..cards import Card
from ..logging import logger
from ..models.card import CardDetails
from ..srs import now_ms


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

EXPLANATION_FALLBACK = "Could not generate explanation."


class GenerationError(RuntimeError):
    """The content generator returned nothing usable."""


def _parse_json(raw: str) -> Any:
    """Parse model output that may be wrapped in a Markdown code fence."""
    text = _FENCE_RE.sub("", (raw or "").strip())
    if not text:
        raise GenerationError("No response from AI")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"AI response is not valid JSON: {exc.msg}") from exc


class CardGenerationFlow:
    """Card content generation backed by an LLM client.

    The client only needs ``complete(prompt, json_mode=...) -> str``. Every
    failure surfaces as :class:`GenerationError`; nothing is invented when
    the model gives an unusable answer.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    def _complete(self, prompt: str, *, json_mode: bool) -> str:
        try:
            return self.llm.complete(prompt, json_mode=json_mode)
        except GenerationError:
            raise
        except Exception as exc:
            logger.warning("card_generation_llm_failed", error_type=type(exc).__name__, error=str(exc)[:200])
            raise GenerationError(str(exc)) from exc

    def generate_deck(self, topic: str, count: int = 10, language: str = "English", *, now: Optional[int] = None) -> List[Card]:
        """Generate ``count`` new cards about ``topic``."""
        prompt = (
            f'Create a list of {count} flashcards for studying "{topic}" (study language: {language}).\n'
            "The 'front' should be the Term Name (术语名称).\n\n"
            "For the content, provide three distinct sections:\n"
            "1. 'layman' (大白话): A simple explanation in Chinese, including key English terms in parentheses.\n"
            "2. 'example' (现实例子): A real-world scenario in Chinese, including key English terms in parentheses.\n"
            "3. 'definition' (专业定义): A strict, professional theoretical definition in pure English.\n\n"
            "Return a JSON object of the form "
            '{"cards": [{"front": str, "layman": str, "example": str, "definition": str}]}. '
            "Ensure the content is high quality and accurate."
        )
        data = _parse_json(self._complete(prompt, json_mode=True))
        entries = data.get("cards") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise GenerationError("AI response does not contain a card list")

        created = now if now is not None else now_ms()
        cards: List[Card] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            front = str(entry.get("front") or "").strip()
            if not front:
                continue
            cards.append(
                Card.create(
                    now=created,
                    term=front,
                    roots="N/A",
                    layman=str(entry.get("layman") or ""),
                    example=str(entry.get("example") or ""),
                    definition=str(entry.get("definition") or ""),
                )
            )
        if not cards:
            raise GenerationError("AI response contained no usable cards")
        logger.info("deck_generated", topic=topic, requested=count, generated=len(cards))
        return cards

    def generate_card_details(self, term: str) -> CardDetails:
        """Auto-fill every content field for a single term."""
        prompt = (
            f'Generate detailed educational flashcard content for the term: "{term}".\n\n'
            "Requirements:\n"
            '1. chineseTranslation: A concise Chinese translation of the term (e.g., "机会成本" for "Opportunity Cost").\n'
            "2. roots: Etymology or word origin (e.g., Latin/Greek roots).\n"
            "3. synonyms: 2-3 related terms.\n"
            "4. layman: A clear, witty explanation in Chinese, embedding key English keywords in parentheses ().\n"
            "5. example: A vivid, real-world scenario in Chinese, embedding key English keywords in parentheses ().\n"
            "6. definition: A professional, academic definition in English.\n"
            "7. sentences: 2 English example sentences using the term.\n\n"
            "Return a single JSON object with exactly these keys."
        )
        data = _parse_json(self._complete(prompt, json_mode=True))
        if not isinstance(data, dict):
            raise GenerationError("AI response is not a JSON object")
        try:
            details = CardDetails.model_validate(data)
        except ValidationError as exc:
            raise GenerationError(f"AI response has unexpected fields: {exc.error_count()} errors") from exc
        logger.info("card_details_generated", term=term)
        return details

    def enhance_explanation(self, term: str, context: str) -> str:
        prompt = (
            f'Provide a clear, simple, one-sentence explanation or mnemonic for the term "{term}" '
            f'in the context of "{context}".'
        )
        try:
            out = self._complete(prompt, json_mode=False)
        except GenerationError:
            return EXPLANATION_FALLBACK
        return out.strip() or "No explanation available."
