"""Notedeck - notes with spaced-repetition flashcards."""

__version__ = "0.1.0"
