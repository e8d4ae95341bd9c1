"""TLS handshake test endpoint."""

from fastapi import APIRouter, Depends, HTTPException

from keybook.api.dependencies import get_tls_service, require_auth
from keybook.models.auth import Session
from keybook.models.tls import TLSProbeRequest, TLSProbeResponse
from keybook.services.tls_service import TLSService

router = APIRouter(prefix="/api/tls", tags=["TLS"])


@router.post("/probe", response_model=TLSProbeResponse)
def probe(
    request: TLSProbeRequest,
    session: Session = Depends(require_auth),
    tls_service: TLSService = Depends(get_tls_service),
):
    """
    Connect to host:port with `openssl s_client` and report the session.

    Unreachable servers yield connected=false rather than an error.
    """
    try:
        return tls_service.probe(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
