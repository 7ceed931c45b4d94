"""
RSVP tally computation.

The tally is always derived from the stored rows; nothing here is cached.
"""
from collections import Counter
from typing import Dict, Iterable, Tuple, Union

from eventease.db.models.rsvp import RSVP, RSVPResponse


def empty_tally() -> Dict[str, int]:
    tally = {response.value: 0 for response in RSVPResponse}
    tally["total"] = 0
    return tally


def build_tally(counts: Iterable[Tuple[Union[RSVPResponse, str], int]]) -> Dict[str, int]:
    """
    Turn ``(response, count)`` pairs from a GROUP BY into a tally.

    Every response category is present, zero when nobody picked it, and
    ``total`` is the sum of the categories.
    """
    tally = empty_tally()
    for response, count in counts:
        key = RSVPResponse(response).value
        tally[key] += count
        tally["total"] += count
    return tally


def tally_from_rows(rsvps: Iterable[RSVP]) -> Dict[str, int]:
    """Same tally computed from RSVP rows already in memory."""
    return build_tally(Counter(rsvp.response for rsvp in rsvps).items())
