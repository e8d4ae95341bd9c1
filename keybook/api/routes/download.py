"""Download endpoint for workspace artifacts."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from keybook.api.dependencies import get_config, get_workspace, require_auth
from keybook.models.artifact import PRIVATE_KINDS, ArtifactEncoding
from keybook.models.auth import Session
from keybook.models.config import AppConfig
from keybook.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/download", tags=["Downloads"])

MEDIA_TYPES = {
    ArtifactEncoding.PEM: "application/x-pem-file",
    ArtifactEncoding.DER: "application/pkix-cert",
}


@router.get("/{name}")
def download_file(
    name: str,
    session: Session = Depends(require_auth),
    workspace: WorkspaceService = Depends(get_workspace),
    config: AppConfig = Depends(get_config),
):
    """Download a workspace file. Private material carries a warning header."""
    try:
        path = workspace.require(name)
        kind, encoding = workspace.detect(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")

    headers = {}
    if kind in PRIVATE_KINDS and config.security.warn_on_key_download:
        headers["X-Security-Warning"] = "This file contains private key material. Handle with care!"

    return FileResponse(
        path=path,
        media_type=MEDIA_TYPES.get(encoding, "application/octet-stream"),
        filename=path.name,
        headers=headers,
    )
