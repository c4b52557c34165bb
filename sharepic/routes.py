"""
HTTP routes for the SharePic API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PayloadError
from starlette.datastructures import UploadFile

from sharepic.dependencies import (
    get_comment_service,
    get_photo_service,
    get_rating_aggregator,
    get_rating_service,
)
from sharepic.errors import ValidationError
from sharepic.ratings import RatingAggregator
from sharepic.schemas import (
    Comment,
    CommentPayload,
    CommentResponse,
    CreatePhotoPayload,
    CreatePhotoResponse,
    Photo,
    RatingPayload,
    RatingResponse,
    RatingSummary,
)
from sharepic.services import (
    CommentService,
    MediaUpload,
    PhotoService,
    RatingService,
)

router = APIRouter()

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_json_object(request: Request) -> dict:
    body = await request.body()
    if not body:
        return {}
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("request body must be valid JSON") from None
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


def _photo_payload(fields: dict) -> CreatePhotoPayload:
    try:
        return CreatePhotoPayload.model_validate(fields)
    except PayloadError as exc:
        raise ValidationError(f"invalid photo fields: {exc.errors()[0]['msg']}") from None


async def _read_photo_request(
    request: Request, max_upload_bytes: int
) -> tuple[CreatePhotoPayload, Optional[MediaUpload]]:
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        return _photo_payload(await _read_json_object(request)), None

    form = await request.form()
    fields = {k: v for k, v in form.items() if isinstance(v, str)}
    image = form.get("image")
    upload = None
    # Browsers send an empty, nameless part when no file was picked.
    if isinstance(image, UploadFile) and image.filename:
        if image.size is not None and image.size > max_upload_bytes:
            raise ValidationError(f"uploaded image exceeds {max_upload_bytes} bytes")
        upload = MediaUpload(
            data=await image.read(),
            filename=image.filename,
            content_type=image.content_type,
        )
    fields.pop("image", None)
    return _photo_payload(fields), upload


@router.post("/photos", response_model=CreatePhotoResponse, status_code=201)
async def create_photo(
    request: Request, photos: PhotoService = Depends(get_photo_service)
):
    """
    Create a photo from a multipart upload (field "image") or a JSON/form "url".
    """
    payload, upload = await _read_photo_request(request, photos.max_upload_bytes)
    photo = await photos.create_photo(
        payload.title,
        url=payload.url,
        upload=upload,
        caption=payload.caption,
        location=payload.location,
        people=payload.people,
        tags=payload.tags,
        visibility=payload.visibility,
    )
    return CreatePhotoResponse(message="Photo created", photo=photo)


@router.get("/photos", response_model=list[Photo])
async def list_photos(
    q: Optional[str] = Query(None, description="Case-insensitive substring"),
    photos: PhotoService = Depends(get_photo_service),
):
    return await photos.search_photos(q)


@router.get("/photos/{photo_id}", response_model=Photo)
async def get_photo(photo_id: str, photos: PhotoService = Depends(get_photo_service)):
    return await photos.get_photo(photo_id)


@router.post(
    "/photos/{photo_id}/comments", response_model=CommentResponse, status_code=201
)
async def add_comment(
    photo_id: str,
    payload: CommentPayload,
    comments: CommentService = Depends(get_comment_service),
):
    comment = await comments.add_comment(photo_id, payload.authorName, payload.text)
    return CommentResponse(message="Comment added", comment=comment)


@router.get("/photos/{photo_id}/comments", response_model=list[Comment])
async def list_comments(
    photo_id: str, comments: CommentService = Depends(get_comment_service)
):
    return await comments.list_comments(photo_id)


@router.post(
    "/photos/{photo_id}/rating", response_model=RatingResponse, status_code=201
)
async def add_rating(
    photo_id: str,
    payload: RatingPayload,
    ratings: RatingService = Depends(get_rating_service),
):
    rating = await ratings.add_rating(photo_id, payload.rating)
    return RatingResponse(message="Rating saved", rating=rating)


@router.get("/photos/{photo_id}/rating", response_model=RatingSummary)
async def rating_summary(
    photo_id: str,
    aggregator: RatingAggregator = Depends(get_rating_aggregator),
):
    return await aggregator.summarize(photo_id)
