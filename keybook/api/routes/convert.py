"""Format conversion API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from keybook.api.dependencies import get_conversion_service, require_auth
from keybook.models.auth import Session
from keybook.models.conversion import ConversionResponse, ConvertRequest, PKCS12ExportRequest, PKCS12ExtractRequest
from keybook.services.conversion_service import ConversionService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/convert", tags=["Conversion"])


@router.post("/der", response_model=ConversionResponse, status_code=201)
def convert_to_der(
    request: ConvertRequest,
    session: Session = Depends(require_auth),
    conversion_service: ConversionService = Depends(get_conversion_service),
):
    """Re-encode a PEM certificate, CSR or key as DER."""
    try:
        return conversion_service.to_der(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/pem", response_model=ConversionResponse, status_code=201)
def convert_to_pem(
    request: ConvertRequest,
    session: Session = Depends(require_auth),
    conversion_service: ConversionService = Depends(get_conversion_service),
):
    """Re-encode a DER certificate, CSR or key as PEM."""
    try:
        return conversion_service.to_pem(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/pkcs12/export", response_model=ConversionResponse, status_code=201)
def export_pkcs12(
    request: PKCS12ExportRequest,
    session: Session = Depends(require_auth),
    conversion_service: ConversionService = Depends(get_conversion_service),
):
    """Bundle a certificate, its key and an optional chain into PKCS#12."""
    try:
        return conversion_service.export_pkcs12(request)
    except ValueError as e:
        logger.error(f"PKCS#12 export failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/pkcs12/extract", response_model=ConversionResponse, status_code=201)
def extract_pkcs12(
    request: PKCS12ExtractRequest,
    session: Session = Depends(require_auth),
    conversion_service: ConversionService = Depends(get_conversion_service),
):
    """Unpack the certificates and/or key of a PKCS#12 bundle."""
    try:
        return conversion_service.extract_pkcs12(request)
    except ValueError as e:
        logger.error(f"PKCS#12 extraction failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
