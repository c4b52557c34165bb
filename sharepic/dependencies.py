"""
Dependency wiring for the FastAPI app.

Backends are built once per app from settings and kept on `app.state`;
route dependencies read them from there, so tests can hand `create_app`
their own in-memory stores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Request

from sharepic.config import Settings
from sharepic.documents import (
    DocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
    default_collections,
)
from sharepic.media import InMemoryMediaStore, MediaStore, S3MediaStore
from sharepic.ratings import RatingAggregator
from sharepic.search import SearchQueryBuilder
from sharepic.services import (
    CommentService,
    PhotoService,
    RatingService,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class Backends:
    documents: Optional[DocumentStore] = None
    media: Optional[MediaStore] = None
    clock: Callable[[], datetime] = utc_now
    id_factory: Callable[[], str] = new_id


def build_document_store(settings: Settings) -> Optional[DocumentStore]:
    collections = default_collections(
        photos_table=settings.photos_collection,
        comments_table=settings.comments_collection,
        ratings_table=settings.ratings_collection,
    )
    if settings.database_url:
        return SqlDocumentStore(settings.database_url, collections)
    if settings.use_in_memory_backends:
        return InMemoryDocumentStore(collections)
    logger.warning("DATABASE_URL is not set; photo endpoints will fail")
    return None


def build_media_store(settings: Settings) -> Optional[MediaStore]:
    if settings.media_configured:
        return S3MediaStore(
            bucket=settings.media_bucket,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            public_base_url=settings.media_public_base_url,
            public_read=settings.media_public_read,
            timeout_seconds=settings.backend_timeout_seconds,
        )
    if settings.use_in_memory_backends:
        return InMemoryMediaStore()
    logger.warning("S3_ENDPOINT / AWS_ACCESS_KEY_ID not set; image uploads will fail")
    return None


def build_backends(settings: Settings) -> Backends:
    return Backends(
        documents=build_document_store(settings),
        media=build_media_store(settings),
    )


@dataclass
class Services:
    photos: PhotoService
    comments: CommentService
    ratings: RatingService
    aggregator: RatingAggregator


def build_services(backends: Backends, settings: Settings) -> Services:
    common = dict(
        timeout=settings.backend_timeout_seconds,
        clock=backends.clock,
        id_factory=backends.id_factory,
        queries=SearchQueryBuilder(),
    )
    return Services(
        photos=PhotoService(
            backends.documents,
            backends.media,
            max_upload_bytes=settings.max_upload_bytes,
            **common,
        ),
        comments=CommentService(backends.documents, **common),
        ratings=RatingService(backends.documents, **common),
        aggregator=RatingAggregator(
            backends.documents, timeout=settings.backend_timeout_seconds
        ),
    )


def get_photo_service(request: Request) -> PhotoService:
    return request.app.state.services.photos


def get_comment_service(request: Request) -> CommentService:
    return request.app.state.services.comments


def get_rating_service(request: Request) -> RatingService:
    return request.app.state.services.ratings


def get_rating_aggregator(request: Request) -> RatingAggregator:
    return request.app.state.services.aggregator
