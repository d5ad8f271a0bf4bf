from . import cards, health, review, tts

__all__ = [
    "cards",
    "health",
    "review",
    "tts",
]
