"""
Per-photo rating aggregates.
"""

from __future__ import annotations

from typing import Optional

from sharepic.concurrency import run_blocking
from sharepic.documents import RATINGS, Aggregate, AggregateFn, DocumentStore
from sharepic.errors import ConfigurationError


class RatingAggregator:
    """
    Summarizes the ratings partition of one photo.

    Mean and count are two independent reads. Ratings are append-only, so a
    rating landing between them only skews one response.
    """

    def __init__(self, documents: Optional[DocumentStore], *, timeout: float = 10.0):
        self._documents = documents
        self._timeout = timeout

    async def summarize(self, photo_id: str) -> dict:
        if self._documents is None:
            raise ConfigurationError("document store not configured")
        average = await run_blocking(
            self._documents.aggregate,
            RATINGS,
            photo_id,
            Aggregate(AggregateFn.AVG, "rating"),
            timeout=self._timeout,
        )
        count = await run_blocking(
            self._documents.aggregate,
            RATINGS,
            photo_id,
            Aggregate(AggregateFn.COUNT),
            timeout=self._timeout,
        )
        if not count:
            average = None
        elif average is not None and float(average).is_integer():
            average = int(average)
        return {"photoId": photo_id, "average": average, "count": count or 0}
