"""Workspace file API endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from keybook.api.dependencies import get_workspace, require_auth
from keybook.models.artifact import ArtifactKind, PermissionsResponse, WorkspaceFile
from keybook.models.auth import Session
from keybook.services.workspace_service import WorkspaceService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/files", tags=["Workspace"])


@router.get("", response_model=List[WorkspaceFile])
def list_files(
    kind: Optional[ArtifactKind] = Query(None, description="Filter by detected kind"),
    session: Session = Depends(require_auth),
    workspace: WorkspaceService = Depends(get_workspace),
):
    """List workspace files with detected kind and permission audit."""
    try:
        return workspace.list_files(kind)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}", response_model=WorkspaceFile)
def get_file(
    name: str,
    session: Session = Depends(require_auth),
    workspace: WorkspaceService = Depends(get_workspace),
):
    """Describe a single workspace file."""
    try:
        return workspace.describe(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.delete("/{name}", status_code=204)
def delete_file(
    name: str,
    session: Session = Depends(require_auth),
    workspace: WorkspaceService = Depends(get_workspace),
):
    """Move a workspace file to the trash folder."""
    try:
        workspace.delete(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/{name}/permissions", response_model=PermissionsResponse)
def fix_permissions(
    name: str,
    session: Session = Depends(require_auth),
    workspace: WorkspaceService = Depends(get_workspace),
):
    """Apply the recommended mode (600 for private material, 644 for public)."""
    try:
        return workspace.apply_permissions(name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
