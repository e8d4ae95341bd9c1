"""Command catalog API endpoints (public, read-only)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from keybook.api.dependencies import get_catalog_service
from keybook.models.catalog import (
    CatalogCategory,
    CatalogEntry,
    CategorySummary,
    FileExtensionInfo,
    PermissionInfo,
    RenderRequest,
    RenderResponse,
)
from keybook.services.catalog_service import CatalogService

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


@router.get("", response_model=List[CatalogEntry])
def list_entries(
    category: Optional[CatalogCategory] = Query(None, description="Filter by category"),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """List catalog entries."""
    return catalog.list_entries(category)


@router.get("/categories", response_model=List[CategorySummary])
def list_categories(catalog: CatalogService = Depends(get_catalog_service)):
    """List catalog categories with entry counts."""
    return catalog.list_categories()


@router.get("/reference/extensions", response_model=List[FileExtensionInfo])
def file_extensions(catalog: CatalogService = Depends(get_catalog_service)):
    """Conventional file extensions."""
    return catalog.file_extensions()


@router.get("/reference/permissions", response_model=List[PermissionInfo])
def recommended_permissions(catalog: CatalogService = Depends(get_catalog_service)):
    """Recommended file modes per artifact type."""
    return catalog.permissions()


@router.get("/{entry_id}", response_model=CatalogEntry)
def get_entry(entry_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    """Get a single catalog entry."""
    try:
        return catalog.get_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{entry_id}/render", response_model=RenderResponse)
def render_entry(
    entry_id: str,
    request: RenderRequest,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Render an entry into a shell command.

    Placeholders without a value fall back to the entry's defaults. Values are
    shell-quoted.
    """
    try:
        catalog.get_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        return catalog.render(entry_id, request.params)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
