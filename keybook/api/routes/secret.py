"""Random secret API endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from keybook.api.dependencies import get_secret_service, require_auth
from keybook.models.auth import Session
from keybook.models.secret import RandomSecretRequest, RandomSecretResponse
from keybook.services.secret_service import SecretService

router = APIRouter(prefix="/api/secrets", tags=["Secrets"])


@router.post("/random", response_model=RandomSecretResponse)
def generate_random_secret(
    request: RandomSecretRequest,
    session: Session = Depends(require_auth),
    secret_service: SecretService = Depends(get_secret_service),
):
    """
    Generate random bytes with `openssl rand`.

    Returned inline, or written to the workspace (mode 600) when output is set.
    """
    try:
        return secret_service.generate(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
