"""Sibling burial: hide the reverse card of a note after a review."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional

from notedeck.models.card import Card, ensure_utc

logger = logging.getLogger(__name__)


def next_day_midnight(review_time: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Start of the calendar day after review_time, as an aware UTC datetime.

    The day boundary is taken in `tz`, or in the system's local time zone
    when no zone is given. Midnight is resolved in that zone, so DST changes
    between the review and the boundary are accounted for.
    """
    review_time = ensure_utc(review_time)
    if tz is None:
        local_day = review_time.astimezone().date()
        midnight = datetime.combine(local_day + timedelta(days=1), time.min).astimezone()
    else:
        local_day = review_time.astimezone(tz).date()
        midnight = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def find_sibling(card: Card, note_cards: Iterable[Card]) -> Optional[Card]:
    """Find the card of the same note with the opposite direction.

    Siblings are identified by note and direction only. If more than one
    card matches, the first one wins and the anomaly is logged.
    """
    wanted = card.direction.opposite
    matches = [
        other
        for other in note_cards
        if other.id != card.id
        and other.note_id == card.note_id
        and other.direction == wanted
    ]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Note %s has %d cards with direction %s; burying card %s only",
            card.note_id,
            len(matches),
            wanted.value,
            matches[0].id,
        )
    return matches[0]


def bury_sibling(
    card: Card,
    note_cards: Iterable[Card],
    review_time: datetime,
    tz: Optional[tzinfo] = None,
) -> Optional[Card]:
    """Compute the burial of a reviewed card's sibling.

    Args:
        card: The card that was just reviewed
        note_cards: All cards of the card's note
        review_time: When the review happened
        tz: Time zone of the day boundary (default: system local time)

    Returns:
        A copy of the sibling with buried_until set to the next midnight, or
        None when the note has no sibling
    """
    sibling = find_sibling(card, note_cards)
    if sibling is None:
        return None

    buried_until = next_day_midnight(review_time, tz)
    logger.info(
        "Burying card %s (sibling of %s) until %s",
        sibling.id,
        card.id,
        buried_until.isoformat(),
    )
    return replace(sibling, buried_until=buried_until)
