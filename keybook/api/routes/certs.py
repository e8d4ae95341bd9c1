"""Certificate API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from keybook.api.dependencies import get_cert_service, require_auth
from keybook.models.artifact import VerifyResponse
from keybook.models.auth import Session
from keybook.models.certificate import (
    CertResponse,
    CSRSignRequest,
    ExpiryResponse,
    MatchKeyRequest,
    MatchKeyResponse,
    SelfSignedCertRequest,
    VerifyChainRequest,
)
from keybook.services.cert_service import CertificateService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/certs", tags=["Certificates"])


@router.post("/self-signed", response_model=CertResponse, status_code=201)
def create_self_signed(
    request: SelfSignedCertRequest,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """
    Create a self-signed certificate.

    A key named `<name>.key` is generated unless key_name names an existing one.
    """
    try:
        return cert_service.create_self_signed(request)
    except ValueError as e:
        logger.error(f"Self-signed certificate creation failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Self-signed certificate error: {e}")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/sign-csr", response_model=CertResponse, status_code=201)
def sign_csr(
    request: CSRSignRequest,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """
    Sign a CSR with a CA certificate and key from the workspace.

    SANs are copied from the CSR unless the request lists them.
    """
    try:
        return cert_service.sign_csr(request)
    except ValueError as e:
        logger.error(f"CSR signing failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"CSR signing error: {e}")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/verify", response_model=VerifyResponse)
def verify_chain(
    request: VerifyChainRequest,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """Verify a certificate against a CA file with `openssl verify`."""
    try:
        return cert_service.verify_chain(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/match-key", response_model=MatchKeyResponse)
def match_key(
    request: MatchKeyRequest,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """Check whether a private key belongs to a certificate."""
    try:
        return cert_service.match_key(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}", response_model=CertResponse)
def get_certificate(
    name: str,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """Parse a certificate from the workspace."""
    try:
        return cert_service.inspect(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}/text", response_class=PlainTextResponse)
def get_certificate_text(
    name: str,
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """Human-readable dump (`openssl x509 -text`)."""
    try:
        return cert_service.to_text(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}/expiry", response_model=ExpiryResponse)
def check_expiry(
    name: str,
    days: int = Query(30, ge=0, le=36500, description="Window in days"),
    session: Session = Depends(require_auth),
    cert_service: CertificateService = Depends(get_cert_service),
):
    """Check whether a certificate expires within the given number of days."""
    try:
        return cert_service.check_expiry(name, days)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
