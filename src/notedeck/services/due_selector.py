"""Due-set selection for review sessions.

A card is due when its due date has passed and it is not buried. The same
predicate backs both the ordered due list and the due count so the two can
never disagree.
"""

from collections.abc import Iterable
from datetime import datetime

from notedeck.models.card import Card, ensure_utc


def is_due(card: Card, now: datetime) -> bool:
    """Check whether a card is eligible for review at `now`.

    True iff due <= now and (buried_until is unset or buried_until <= now).
    """
    now = ensure_utc(now)
    if ensure_utc(card.due) > now:
        return False
    return card.buried_until is None or ensure_utc(card.buried_until) <= now


def select_due_cards(
    cards: Iterable[Card],
    now: datetime,
    review_new_cards_first: bool = False,
) -> list[Card]:
    """Return the due cards in review order.

    Args:
        cards: Candidate cards, in their stable storage order
        now: Current time
        review_new_cards_first: Order by state first (New before the rest),
            then by due date; otherwise by due date alone

    Returns:
        The due cards; ties keep the input order
    """
    due = [card for card in cards if is_due(card, now)]
    if review_new_cards_first:
        due.sort(key=lambda card: (int(card.state), ensure_utc(card.due)))
    else:
        due.sort(key=lambda card: ensure_utc(card.due))
    return due


def count_due_cards(cards: Iterable[Card], now: datetime) -> int:
    """Count the cards `select_due_cards` would return."""
    return sum(1 for card in cards if is_due(card, now))
