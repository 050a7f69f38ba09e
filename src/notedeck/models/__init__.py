"""Data models for Notedeck."""

from notedeck.models.card import (
    Card,
    CardDirection,
    CardState,
    InvalidRatingError,
    Rating,
    UserRating,
)
from notedeck.models.note import Note
from notedeck.models.review import ReviewOutcome, ScheduledReview

__all__ = [
    "Card",
    "CardDirection",
    "CardState",
    "InvalidRatingError",
    "Note",
    "Rating",
    "ReviewOutcome",
    "ScheduledReview",
    "UserRating",
]
