"""Global search and tag endpoints."""

import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Query

from notecase.models import SearchResults
from notecase.search import count_tags
from notecase.server.deps import BackendDep
from notecase.server.schemas import envelope

router = APIRouter(tags=["search"])
logger = logging.getLogger(__name__)

SearchType = Literal["all", "notes", "categories", "subcategories"]


@router.get("/search")
def search_endpoint(
    backend: BackendDep,
    q: Annotated[str, Query(min_length=1)],
    search_type: Annotated[SearchType, Query(alias="type")] = "all",
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> dict[str, Any]:
    """Search notes, categories and subcategories by substring."""
    needle = q.lower()
    results = SearchResults()
    if search_type in ("all", "notes"):
        results.notes = backend.search_notes(q)[:limit]
    if search_type in ("all", "categories", "subcategories"):
        categories = backend.list_categories()
        if search_type in ("all", "categories"):
            results.categories = [
                c for c in categories if needle in c.name.lower()
            ][:limit]
        if search_type in ("all", "subcategories"):
            results.subcategories = [
                s
                for c in categories
                for s in c.subcategories
                if needle in s.name.lower()
            ][:limit]
    return envelope(results)


@router.get("/tags")
def tags_endpoint(backend: BackendDep) -> dict[str, Any]:
    """Return every tag with its usage count."""
    return envelope(count_tags(backend.list_notes()))
