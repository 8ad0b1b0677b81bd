"""Category and subcategory endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from notecase.models import (
    CategoryCreate,
    CategoryUpdate,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from notecase.server.deps import BackendDep, validate_path_id
from notecase.server.schemas import envelope

router = APIRouter(tags=["catalog"])
logger = logging.getLogger(__name__)


def _required_name(name: str | None, label: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{label} name is required",
        )
    return cleaned


@router.get("/categories")
def list_categories_endpoint(backend: BackendDep) -> dict[str, Any]:
    """List categories with their subcategories."""
    return envelope(backend.list_categories())


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category_endpoint(
    payload: CategoryCreate,
    backend: BackendDep,
) -> dict[str, Any]:
    """Create a category."""
    name = _required_name(payload.name, "Category")
    return envelope(backend.create_category(name, payload.color))


@router.put("/categories/{category_id}")
def update_category_endpoint(
    category_id: str,
    payload: CategoryUpdate,
    backend: BackendDep,
) -> dict[str, Any]:
    """Rename or recolor a category."""
    validate_path_id(category_id, "category_id")
    if payload.name is not None:
        payload.name = _required_name(payload.name, "Category")
    category = backend.update_category(category_id, payload)
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Category {category_id} not found",
        )
    return envelope(category)


@router.delete("/categories/{category_id}")
def delete_category_endpoint(category_id: str, backend: BackendDep) -> dict[str, Any]:
    """Delete a category with its subcategories and notes."""
    validate_path_id(category_id, "category_id")
    backend.delete_category(category_id)
    logger.info("Deleted category %s", category_id)
    return envelope(None)


@router.get("/subcategories")
def list_subcategories_endpoint(
    backend: BackendDep,
    category_id: str | None = None,
) -> dict[str, Any]:
    """List subcategories, optionally for one category."""
    subcategories = [
        subcategory
        for category in backend.list_categories()
        if category_id is None or category.id == category_id
        for subcategory in category.subcategories
    ]
    return envelope(subcategories)


@router.post("/subcategories", status_code=status.HTTP_201_CREATED)
def create_subcategory_endpoint(
    payload: SubcategoryCreate,
    backend: BackendDep,
) -> dict[str, Any]:
    """Create a subcategory."""
    name = _required_name(payload.name, "Subcategory")
    return envelope(backend.create_subcategory(name, payload.category_id))


@router.put("/subcategories/{subcategory_id}")
def update_subcategory_endpoint(
    subcategory_id: str,
    payload: SubcategoryUpdate,
    backend: BackendDep,
) -> dict[str, Any]:
    """Rename or move a subcategory."""
    validate_path_id(subcategory_id, "subcategory_id")
    if payload.name is not None:
        payload.name = _required_name(payload.name, "Subcategory")
    subcategory = backend.update_subcategory(subcategory_id, payload)
    if subcategory is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subcategory {subcategory_id} not found",
        )
    return envelope(subcategory)


@router.delete("/subcategories/{subcategory_id}")
def delete_subcategory_endpoint(
    subcategory_id: str,
    backend: BackendDep,
) -> dict[str, Any]:
    """Delete a subcategory and its notes."""
    validate_path_id(subcategory_id, "subcategory_id")
    backend.delete_subcategory(subcategory_id)
    return envelope(None)
