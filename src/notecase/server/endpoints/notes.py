"""Note endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status

from notecase.images import MAX_IMAGES_PER_NOTE
from notecase.models import NoteCreate, NoteUpdate
from notecase.server.deps import BackendDep, validate_path_id
from notecase.server.schemas import envelope

router = APIRouter(prefix="/notes", tags=["notes"])
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


def _check_note_fields(title: str | None, images: list[str] | None) -> None:
    if title is not None and not title.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Note title is required",
        )
    if images is not None and len(images) > MAX_IMAGES_PER_NOTE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A note can hold at most {MAX_IMAGES_PER_NOTE} images",
        )


@router.get("")
def list_notes_endpoint(  # noqa: PLR0913
    backend: BackendDep,
    subcategory_id: str | None = None,
    category_id: str | None = None,
    search: str | None = None,
    tags: str | None = None,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict[str, Any]:
    """List notes with optional filters and offset/limit pagination."""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    page = backend.query_notes(
        subcategory_id=subcategory_id,
        category_id=category_id,
        search=search,
        tags=tag_list,
        limit=limit,
        offset=offset,
    )
    return envelope(
        page.notes,
        pagination={
            "total": page.total,
            "limit": page.limit,
            "offset": page.offset,
            "has_more": page.has_more,
        },
    )


@router.get("/{note_id}")
def get_note_endpoint(note_id: str, backend: BackendDep) -> dict[str, Any]:
    """Return a single note."""
    validate_path_id(note_id, "note_id")
    note = backend.get_note(note_id)
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note {note_id} not found",
        )
    return envelope(note)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_note_endpoint(payload: NoteCreate, backend: BackendDep) -> dict[str, Any]:
    """Create a note."""
    _check_note_fields(payload.title, payload.images)
    note = backend.create_note(payload.model_copy(update={"title": payload.title.strip()}))
    return envelope(note)


@router.put("/{note_id}")
def update_note_endpoint(
    note_id: str,
    payload: NoteUpdate,
    backend: BackendDep,
) -> dict[str, Any]:
    """Apply a partial update to a note."""
    validate_path_id(note_id, "note_id")
    _check_note_fields(payload.title, payload.images)
    note = backend.update_note(note_id, payload)
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note {note_id} not found",
        )
    return envelope(note)


@router.delete("/{note_id}")
def delete_note_endpoint(note_id: str, backend: BackendDep) -> dict[str, Any]:
    """Delete a note."""
    validate_path_id(note_id, "note_id")
    backend.delete_note(note_id)
    return envelope(None)
