"""Private and public key API endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from keybook.api.dependencies import get_key_service, require_auth
from keybook.models.auth import Session
from keybook.models.key import DecryptKeyRequest, KeyGenerateRequest, KeyResponse, PKCS8Request, PublicKeyRequest
from keybook.services.key_service import KeyService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/keys", tags=["Keys"])


@router.post("", response_model=KeyResponse, status_code=201)
def generate_key(
    request: KeyGenerateRequest,
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """
    Generate a private key (RSA, ECDSA or Ed25519).

    The key is written with mode 600. With a passphrase it is AES-256 encrypted.
    """
    try:
        return key_service.generate_key(request)
    except ValueError as e:
        logger.error(f"Key generation failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Key generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("", response_model=List[KeyResponse])
def list_keys(
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """List private keys in the workspace."""
    try:
        return key_service.list_keys()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/{name}", response_model=KeyResponse)
def get_key(
    name: str,
    x_key_passphrase: Optional[str] = Header(None),
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """
    Describe a private key.

    Encrypted keys are only described in full when the passphrase is sent in
    the X-Key-Passphrase header.
    """
    try:
        return key_service.inspect_key(name, x_key_passphrase)
    except ValueError as e:
        # a wrong passphrase is a bad request, anything else a failed lookup
        status_code = 400 if x_key_passphrase and str(e).startswith("Failed to load") else 404
        raise HTTPException(status_code=status_code, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/{name}/public", response_model=KeyResponse, status_code=201)
def extract_public_key(
    name: str,
    request: PublicKeyRequest,
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """Write the public half of a private key (mode 644)."""
    try:
        return key_service.extract_public_key(name, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/{name}/pkcs8", response_model=KeyResponse, status_code=201)
def convert_to_pkcs8(
    name: str,
    request: PKCS8Request,
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """Re-encode a private key as PKCS#8, encrypted when new_passphrase is set."""
    try:
        return key_service.to_pkcs8(name, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.post("/{name}/decrypt", response_model=KeyResponse, status_code=201)
def remove_passphrase(
    name: str,
    request: DecryptKeyRequest,
    session: Session = Depends(require_auth),
    key_service: KeyService = Depends(get_key_service),
):
    """Write an unencrypted copy of an encrypted key (mode 600)."""
    try:
        return key_service.remove_passphrase(name, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
