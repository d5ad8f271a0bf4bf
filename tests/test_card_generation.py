import json

import pytest

from zoya.flows.card_generation import EXPLANATION_FALLBACK, CardGenerationFlow, GenerationError


class _FakeLLM:
    """Returns canned answers and records prompts."""

    def __init__(self, answer="", exc: Exception | None = None) -> None:
        self.answer = answer
        self.exc = exc
        self.calls: list[tuple[str, bool]] = []

    def complete(self, prompt: str, *, json_mode: bool = False) -> str:
        self.calls.append((prompt, json_mode))
        if self.exc is not None:
            raise self.exc
        return self.answer


def test_generate_deck_builds_new_cards():
    answer = json.dumps(
        {
            "cards": [
                {"front": "Inflation", "layman": "物价上涨", "example": "奶茶涨价", "definition": "Rising prices."},
                {"front": "Deflation", "layman": "物价下降", "example": "", "definition": "Falling prices."},
            ]
        }
    )
    llm = _FakeLLM(answer)
    cards = CardGenerationFlow(llm).generate_deck("Macroeconomics", count=2, now=55)
    assert [c.term for c in cards] == ["Inflation", "Deflation"]
    assert all(c.roots == "N/A" for c in cards)
    assert all(c.next_review_date == 0 and c.interval == 0 for c in cards)
    assert all(c.created_at == 55 for c in cards)
    assert len({c.id for c in cards}) == 2
    prompt, json_mode = llm.calls[0]
    assert '"Macroeconomics"' in prompt
    assert json_mode is True


def test_generate_deck_accepts_fenced_array_and_skips_blank_fronts():
    answer = '```json\n[{"front": "Beta"}, {"front": "  "}, "junk"]\n```'
    cards = CardGenerationFlow(_FakeLLM(answer)).generate_deck("Finance")
    assert [c.term for c in cards] == ["Beta"]


@pytest.mark.parametrize("answer", ["", "not json", '{"cards": "nope"}', '{"cards": []}'])
def test_generate_deck_failures(answer):
    with pytest.raises(GenerationError):
        CardGenerationFlow(_FakeLLM(answer)).generate_deck("Topic")


def test_generate_deck_wraps_provider_errors():
    with pytest.raises(GenerationError):
        CardGenerationFlow(_FakeLLM(exc=RuntimeError("LLM timeout"))).generate_deck("Topic")


def test_generate_card_details():
    answer = json.dumps(
        {
            "chineseTranslation": "机会成本",
            "roots": "Latin opportunitas",
            "synonyms": ["Trade-off"],
            "layman": "鱼和熊掌",
            "example": "刷抖音",
            "definition": "The value of the next best alternative.",
            "sentences": ["One.", "Two."],
        }
    )
    details = CardGenerationFlow(_FakeLLM(answer)).generate_card_details("Opportunity Cost")
    assert details.chinese_translation == "机会成本"
    assert details.synonyms == ["Trade-off"]
    assert details.sentences == ["One.", "Two."]


def test_generate_card_details_rejects_non_object():
    with pytest.raises(GenerationError):
        CardGenerationFlow(_FakeLLM("[1, 2]")).generate_card_details("x")


def test_enhance_explanation():
    llm = _FakeLLM("  Think of it as the road not taken.  ")
    out = CardGenerationFlow(llm).enhance_explanation("Opportunity Cost", "economics")
    assert out == "Think of it as the road not taken."
    assert llm.calls[0][1] is False


def test_enhance_explanation_fallbacks():
    assert CardGenerationFlow(_FakeLLM("")).enhance_explanation("t", "c") == "No explanation available."
    failing = _FakeLLM(exc=RuntimeError("boom"))
    assert CardGenerationFlow(failing).enhance_explanation("t", "c") == EXPLANATION_FALLBACK
