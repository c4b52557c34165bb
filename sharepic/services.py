"""
Create and read flows for photos, comments and ratings.

Services receive their backends at construction time. Every backend call
runs in a worker thread under a timeout (see `sharepic.concurrency`).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from sharepic.concurrency import run_blocking
from sharepic.documents import COMMENTS, PHOTOS, RATINGS, DocumentStore
from sharepic.errors import (
    BackendTimeout,
    ConfigurationError,
    NotFound,
    ServerError,
    SharePicError,
    ValidationError,
)
from sharepic.media import MediaStore
from sharepic.records import (
    DEFAULT_VISIBILITY,
    CommentRecord,
    PhotoRecord,
    RatingRecord,
)
from sharepic.search import SearchQueryBuilder

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
DEFAULT_MAX_UPLOAD_BYTES = 8 * 1024 * 1024


@dataclass(frozen=True)
class MediaUpload:
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


def parse_csv_list(value: Union[str, Iterable[str], None]) -> list[str]:
    """
    Split a comma-separated string into trimmed, non-empty items.

    Order and duplicates are kept. An already split list is trimmed the
    same way but not split again.
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return [s for s in (str(item).strip() for item in items) if s]


def parse_rating(value: Any) -> int:
    """Accept an integer 1-5, given as int, integral float or numeric string."""
    error = ValidationError(
        f"rating must be an integer between {MIN_RATING} and {MAX_RATING}"
    )
    if isinstance(value, bool) or value is None:
        raise error
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise error from None
    if isinstance(value, float):
        if not value.is_integer():
            raise error
        value = int(value)
    if not isinstance(value, int) or not MIN_RATING <= value <= MAX_RATING:
        raise error
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    # Fixed width so lexical order equals chronological order.
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="microseconds")
        .replace("+00:00", "Z")
    )


def new_id() -> str:
    return str(uuid.uuid4())


class _DocumentService:
    def __init__(
        self,
        documents: Optional[DocumentStore],
        *,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
        queries: Optional[SearchQueryBuilder] = None,
    ):
        self._documents = documents
        self._timeout = timeout
        self._clock = clock
        self._new_id = id_factory
        self._queries = queries or SearchQueryBuilder()

    @property
    def documents(self) -> DocumentStore:
        if self._documents is None:
            raise ConfigurationError("document store not configured")
        return self._documents

    async def _call(self, func, *args):
        return await run_blocking(func, *args, timeout=self._timeout)

    def _now(self) -> str:
        return format_timestamp(self._clock())

    async def _require_photo(self, photo_id: str) -> dict:
        # Best effort: nothing deletes photos, so there is no race to guard.
        try:
            return await self._call(
                self.documents.point_read, PHOTOS, photo_id, photo_id
            )
        except NotFound:
            raise NotFound("Photo not found") from None

    async def _insert(self, collection: str, doc: dict, what: str) -> dict:
        try:
            return await self._call(self.documents.insert, collection, doc)
        except SharePicError as exc:
            raise ServerError(f"failed to save {what}", exc) from exc


class PhotoService(_DocumentService):
    def __init__(
        self,
        documents: Optional[DocumentStore],
        media: Optional[MediaStore] = None,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        **kwargs,
    ):
        super().__init__(documents, **kwargs)
        self._media = media
        self._max_upload_bytes = max_upload_bytes

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    async def create_photo(
        self,
        title: Optional[str],
        *,
        url: Optional[str] = None,
        upload: Optional[MediaUpload] = None,
        caption: Optional[str] = None,
        location: Optional[str] = None,
        people: Union[str, Iterable[str], None] = None,
        tags: Union[str, Iterable[str], None] = None,
        visibility: Optional[str] = None,
    ) -> dict:
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required")
        if upload is not None:
            self._check_upload_size(upload)
        elif not (url or "").strip():
            raise ValidationError("Provide url OR upload an image file")
        documents = self.documents

        if upload is not None:
            locator = await self._store_media(upload)
        else:
            locator = (url or "").strip()
        if not locator:
            raise ValidationError("Provide url OR upload an image file")

        record = PhotoRecord(
            id=self._new_id(),
            title=title,
            url=locator,
            created_at=self._now(),
            caption=(caption or "").strip(),
            location=(location or "").strip(),
            people=tuple(parse_csv_list(people)),
            tags=tuple(parse_csv_list(tags)),
            visibility=(visibility or "").strip() or DEFAULT_VISIBILITY,
        )
        try:
            await self._call(documents.insert, PHOTOS, record.as_dict())
        except BackendTimeout as exc:
            # The insert may still commit, so the upload has to stay.
            if upload is not None:
                logger.warning(
                    "Photo %s insert timed out; media %s may be orphaned",
                    record.id,
                    locator,
                )
            raise ServerError("failed to save photo", exc) from exc
        except SharePicError as exc:
            if upload is not None:
                await self._discard_media(locator)
            raise ServerError("failed to save photo", exc) from exc
        logger.info("Created photo %s", record.id)
        return record.as_dict()

    def _check_upload_size(self, upload: MediaUpload) -> None:
        if not upload.data:
            raise ValidationError("uploaded image is empty")
        if len(upload.data) > self._max_upload_bytes:
            raise ValidationError(
                f"uploaded image exceeds {self._max_upload_bytes} bytes"
            )

    async def _store_media(self, upload: MediaUpload) -> str:
        if self._media is None:
            raise ConfigurationError("media store not configured")
        return await self._call(
            self._media.store, upload.data, upload.filename, upload.content_type
        )

    async def _discard_media(self, locator: str) -> None:
        try:
            await self._call(self._media.delete, locator)
        except SharePicError as exc:
            logger.warning("Left orphaned media object %s: %s", locator, exc)

    async def get_photo(self, photo_id: str) -> dict:
        return await self._require_photo(photo_id)

    async def search_photos(self, term: Optional[str] = None) -> list[dict]:
        query = self._queries.build(term)
        return await self._call(self.documents.query, PHOTOS, query)


class CommentService(_DocumentService):
    async def add_comment(
        self, photo_id: str, author_name: Optional[str], text: Optional[str]
    ) -> dict:
        author_name = (author_name or "").strip()
        text = (text or "").strip()
        if not author_name:
            raise ValidationError("authorName is required")
        if not text:
            raise ValidationError("text is required")
        await self._require_photo(photo_id)

        record = CommentRecord(
            id=self._new_id(),
            photo_id=photo_id,
            author_name=author_name,
            text=text,
            created_at=self._now(),
        )
        await self._insert(COMMENTS, record.as_dict(), "comment")
        return record.as_dict()

    async def list_comments(self, photo_id: str) -> list[dict]:
        query = self._queries.for_partition(photo_id)
        return await self._call(self.documents.query, COMMENTS, query)


class RatingService(_DocumentService):
    async def add_rating(self, photo_id: str, value: Any) -> dict:
        rating = parse_rating(value)
        await self._require_photo(photo_id)

        record = RatingRecord(
            id=self._new_id(),
            photo_id=photo_id,
            rating=rating,
            created_at=self._now(),
        )
        await self._insert(RATINGS, record.as_dict(), "rating")
        return record.as_dict()
