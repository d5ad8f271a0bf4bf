from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..cards import Card, card_to_dict


class CardContent(BaseModel):
    """Editable study content of a card (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    term: str = ""
    chinese_translation: Optional[str] = Field(default=None, alias="chineseTranslation")
    roots: str = "N/A"
    synonyms: List[str] = []
    layman: str = ""
    example: str = ""
    sentences: List[str] = []
    definition: str = ""


class CardIn(CardContent):
    """A new card as submitted by the user; the term is required."""

    term: str = Field(min_length=1, max_length=200)

    @field_validator("term")
    @classmethod
    def _term_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("term must not be blank")
        return value


class CardOut(CardContent):
    """A card with its scheduling state, as stored and exported."""

    id: Union[str, int]
    term: str
    next_review_date: int = Field(default=0, alias="nextReviewDate")
    interval: int = 0
    repetition: int = 0
    ease_factor: float = Field(default=2.5, alias="easeFactor")
    created_at: int = Field(alias="createdAt")

    @classmethod
    def from_card(cls, card: Card) -> "CardOut":
        return cls.model_validate(card_to_dict(card))


class CardListResponse(BaseModel):
    items: List[CardOut]
    total: int


class CardDetails(BaseModel):
    """AI auto-fill result for a single term."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chinese_translation: str = Field(default="", alias="chineseTranslation")
    roots: str = ""
    synonyms: List[str] = []
    layman: str = ""
    example: str = ""
    definition: str = ""
    sentences: List[str] = []


class GenerateDeckRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=200)
    count: int = Field(default=10, ge=1, le=50)
    language: str = Field(default="English", min_length=1, max_length=40)
    save: bool = True


class AutofillRequest(BaseModel):
    term: str = Field(min_length=1, max_length=200)


class ExplainRequest(BaseModel):
    term: str = Field(min_length=1, max_length=200)
    context: str = Field(default="", max_length=2000)


class ExplainResponse(BaseModel):
    explanation: str


class ImportResponse(BaseModel):
    imported: int
    total: int


class ShuffleResponse(BaseModel):
    ids: List[Union[str, int]]
