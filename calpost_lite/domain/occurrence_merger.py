"""Occurrence deduplication for calpost_lite.

When several day-targeted windows are evaluated in one run, the same
occurrence can be selected more than once. Occurrences are duplicates iff
they share both uid and start instant; uid alone is not unique because a
recurring event yields many occurrences.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from dateutil import parser as date_parser

from calpost_lite.calendar.lite_models import Occurrence, format_instant

logger = logging.getLogger(__name__)


class OccurrenceMerger:
    """Handles deduplication and identity lookup of occurrences."""

    def deduplicate(self, occurrences: Iterable[Occurrence]) -> list[Occurrence]:
        """Keep the first occurrence for each (uid, start instant).

        Relative order of first appearances is preserved, so applying this
        twice gives the same result as applying it once.

        Args:
            occurrences: Occurrences possibly containing repeats

        Returns:
            Deduplicated list of occurrences
        """
        seen: set[tuple[str, str]] = set()
        deduplicated = []
        total = 0

        for occurrence in occurrences:
            total += 1
            key = occurrence.identity
            if key not in seen:
                seen.add(key)
                deduplicated.append(occurrence)

        if total != len(deduplicated):
            logger.debug("Removed %d duplicate occurrences", total - len(deduplicated))

        return deduplicated

    def find_by_identity(
        self,
        occurrences: Iterable[Occurrence],
        uid: str,
        start: datetime | str,
    ) -> Optional[Occurrence]:
        """Find an occurrence by (uid, start) rather than by list position.

        Args:
            occurrences: Candidate occurrences
            uid: Source event UID
            start: Start instant as datetime or as the ISO string the listing API returned

        Returns:
            The matching occurrence or None
        """
        start_key = _normalize_iso(start) if isinstance(start, str) else format_instant(start)
        for occurrence in occurrences:
            if occurrence.identity == (uid, start_key):
                return occurrence
        return None


def _normalize_iso(value: str) -> str:
    """Normalize an ISO-8601 string to the listing wire format.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    return format_instant(date_parser.isoparse(value))


_merger = OccurrenceMerger()


def deduplicate_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    """Module-level convenience wrapper around OccurrenceMerger.deduplicate."""
    return _merger.deduplicate(occurrences)
