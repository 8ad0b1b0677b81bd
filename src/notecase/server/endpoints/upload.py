"""Image upload endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, File, Query, UploadFile, status

from notecase.images import validate_image
from notecase.server.deps import BackendDep
from notecase.server.schemas import envelope

router = APIRouter(prefix="/upload", tags=["upload"])
logger = logging.getLogger(__name__)


@router.post("/image", status_code=status.HTTP_201_CREATED)
def upload_image_endpoint(
    file: Annotated[UploadFile, File(...)],
    backend: BackendDep,
) -> dict[str, Any]:
    """Store an image in the bucket and return its public URL."""
    contents = file.file.read()
    filename = file.filename or "image"
    content_type = validate_image(contents, file.content_type, filename)
    url = backend.upload_image(contents, filename, content_type)
    return envelope({"url": url})


@router.delete("/image")
def delete_image_endpoint(
    url: Annotated[str, Query(min_length=1)],
    backend: BackendDep,
) -> dict[str, Any]:
    """Delete an uploaded image by its URL."""
    backend.delete_image(url)
    return envelope(None)
