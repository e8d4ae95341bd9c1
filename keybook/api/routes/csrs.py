"""CSR API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from keybook.api.dependencies import get_csr_service, require_auth
from keybook.models.artifact import VerifyResponse
from keybook.models.auth import Session
from keybook.models.csr import CSRCreateRequest, CSRResponse
from keybook.services.csr_service import CSRService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/csrs", tags=["CSRs"])


@router.post("", response_model=CSRResponse, status_code=201)
def create_csr(
    request: CSRCreateRequest,
    csr_service: CSRService = Depends(get_csr_service),
    session: Session = Depends(require_auth),
):
    """
    Create a CSR.

    A key named `<name>.key` is generated unless key_name names an existing one.
    """
    try:
        return csr_service.create_csr(request)
    except ValueError as e:
        logger.error(f"CSR creation failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"CSR creation error: {e}")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}", response_model=CSRResponse)
def get_csr(
    name: str,
    csr_service: CSRService = Depends(get_csr_service),
    session: Session = Depends(require_auth),
):
    """Parse a CSR from the workspace."""
    try:
        return csr_service.inspect(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}/verify", response_model=VerifyResponse)
def verify_csr(
    name: str,
    csr_service: CSRService = Depends(get_csr_service),
    session: Session = Depends(require_auth),
):
    """Check the CSR self-signature with `openssl req -verify`."""
    try:
        return csr_service.verify(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
