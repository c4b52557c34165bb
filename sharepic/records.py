"""
Immutable records for the three persisted entity kinds.

`as_dict` produces the stored document, which is also the wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_VISIBILITY = "public"


@dataclass(frozen=True)
class PhotoRecord:
    id: str
    title: str
    url: str
    created_at: str
    caption: str = ""
    location: str = ""
    people: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    visibility: str = DEFAULT_VISIBILITY

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "caption": self.caption,
            "location": self.location,
            "people": list(self.people),
            "tags": list(self.tags),
            "visibility": self.visibility,
            "url": self.url,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class CommentRecord:
    id: str
    photo_id: str
    author_name: str
    text: str
    created_at: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "photoId": self.photo_id,
            "authorName": self.author_name,
            "text": self.text,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class RatingRecord:
    id: str
    photo_id: str
    rating: int
    created_at: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "photoId": self.photo_id,
            "rating": self.rating,
            "createdAt": self.created_at,
        }
