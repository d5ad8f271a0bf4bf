"""Zoya Cards: flashcards with SM-2 scheduling and AI-generated content."""

__version__ = "0.4.0"
