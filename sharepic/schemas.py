"""
Pydantic schemas for the SharePic API.

Request fields are loose on purpose: missing or malformed values are
rejected by the services with a 400, not by FastAPI with a 422.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class CreatePhotoPayload(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    caption: Optional[str] = None
    location: Optional[str] = None
    people: Any = None
    tags: Any = None
    visibility: Optional[str] = None


class Photo(BaseModel):
    id: str
    title: str
    caption: str = ""
    location: str = ""
    people: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    visibility: str = "public"
    url: str
    createdAt: str


class CreatePhotoResponse(BaseModel):
    message: str
    photo: Photo


class CommentPayload(BaseModel):
    authorName: Optional[str] = None
    text: Optional[str] = None


class Comment(BaseModel):
    id: str
    photoId: str
    authorName: str
    text: str
    createdAt: str


class CommentResponse(BaseModel):
    message: str
    comment: Comment


class RatingPayload(BaseModel):
    rating: Any = None


class Rating(BaseModel):
    id: str
    photoId: str
    rating: int
    createdAt: str


class RatingResponse(BaseModel):
    message: str
    rating: Rating


class RatingSummary(BaseModel):
    photoId: str
    # Whole means are sent as integers.
    average: Optional[Union[int, float]] = None
    count: int
