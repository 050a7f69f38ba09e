"""Collection statistics and review forecasts."""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from notedeck.models.card import Card, CardState, ensure_utc
from notedeck.services.due_selector import count_due_cards


@dataclass
class CollectionStats:
    """Summary counts over a card collection."""

    total_cards: int = 0
    reversed_cards: int = 0
    new_cards: int = 0
    due_cards: int = 0
    total_reviews: int = 0
    total_lapses: int = 0
    average_difficulty: float = 0.0
    average_stability: float = 0.0


def collection_stats(cards: Iterable[Card], now: datetime) -> CollectionStats:
    """Compute summary statistics; averages cover reviewed cards only."""
    cards = list(cards)
    reviewed = [card for card in cards if card.reps > 0]

    stats = CollectionStats(
        total_cards=len(cards),
        reversed_cards=sum(1 for card in cards if card.is_reversed),
        new_cards=sum(1 for card in cards if card.state == CardState.NEW),
        due_cards=count_due_cards(cards, now),
        total_reviews=sum(card.reps for card in cards),
        total_lapses=sum(card.lapses for card in cards),
    )
    if reviewed:
        stats.average_difficulty = sum(c.difficulty for c in reviewed) / len(reviewed)
        stats.average_stability = sum(c.stability for c in reviewed) / len(reviewed)
    return stats


def due_forecast(cards: Iterable[Card], now: datetime, days: int) -> dict[str, int]:
    """Count cards coming due on each day of [now, now + days].

    Returns:
        Mapping of ISO date (UTC) to number of cards due that day, in date order
    """
    now = ensure_utc(now)
    end = now + timedelta(days=days)
    counts = Counter(
        ensure_utc(card.due).date().isoformat()
        for card in cards
        if now <= ensure_utc(card.due) <= end
    )
    return dict(sorted(counts.items()))


def review_history(cards: Iterable[Card], now: datetime, days: int) -> dict[str, int]:
    """Count cards last reviewed on each day of [now - days, now]."""
    now = ensure_utc(now)
    start = now - timedelta(days=days)
    counts = Counter(
        ensure_utc(card.last_review).date().isoformat()
        for card in cards
        if card.last_review is not None and start <= ensure_utc(card.last_review) <= now
    )
    return dict(sorted(counts.items()))
