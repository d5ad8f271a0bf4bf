from .card_generation import CardGenerationFlow, GenerationError

__all__ = ["CardGenerationFlow", "GenerationError"]
