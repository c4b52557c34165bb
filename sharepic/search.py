"""
Query construction for photo search and per-photo child listings.
"""

from __future__ import annotations

from typing import Optional

from sharepic.documents import DocumentQuery, SubstringMatch

SEARCH_FIELDS = ("title", "caption", "location")
RECENCY_FIELD = "createdAt"


class SearchQueryBuilder:
    """
    Builds recency-ordered queries.

    A search term becomes a case-insensitive substring match OR-ed across
    title, caption and location. There is no ranking or tokenization; the
    term is bound as a parameter by the store, never spliced into SQL.
    """

    def __init__(self, fields: tuple[str, ...] = SEARCH_FIELDS):
        self.fields = fields

    def build(self, term: Optional[str] = None) -> DocumentQuery:
        term = (term or "").strip().lower()
        if not term:
            return DocumentQuery(order_by=RECENCY_FIELD, descending=True)
        return DocumentQuery(
            match=SubstringMatch(fields=self.fields, term=term),
            order_by=RECENCY_FIELD,
            descending=True,
        )

    def for_partition(self, photo_id: str) -> DocumentQuery:
        return DocumentQuery(
            partition_key=photo_id, order_by=RECENCY_FIELD, descending=True
        )
