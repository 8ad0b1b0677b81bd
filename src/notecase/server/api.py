"""API router configuration."""

from fastapi import APIRouter

from .endpoints import auth, catalog, notes, search, upload

router = APIRouter()
router.include_router(auth.router)
router.include_router(catalog.router)
router.include_router(notes.router)
router.include_router(search.router)
router.include_router(upload.router)
