"""Services for Notedeck."""

from notedeck.services.burial import bury_sibling, find_sibling, next_day_midnight
from notedeck.services.due_selector import count_due_cards, is_due, select_due_cards
from notedeck.services.review_service import ReviewService
from notedeck.services.scheduler import Scheduler, compute_next_review, preview_intervals
from notedeck.services.stats import CollectionStats, collection_stats, due_forecast

__all__ = [
    "CollectionStats",
    "ReviewService",
    "Scheduler",
    "bury_sibling",
    "collection_stats",
    "compute_next_review",
    "count_due_cards",
    "due_forecast",
    "find_sibling",
    "is_due",
    "next_day_midnight",
    "preview_intervals",
    "select_due_cards",
]
