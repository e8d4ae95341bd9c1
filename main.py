"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from keybook.api.dependencies import get_config
from keybook.api.routes import auth, catalog, certs, convert, csrs, download, files, keys, secret, tls
from keybook.services.openssl_service import OpenSSLService
from keybook.utils import permissions
from keybook.utils.file_utils import FileUtils
from keybook.utils.logger import setup_logger

# Load configuration
config = get_config()

# Setup logging
setup_logger(config)
logger = logging.getLogger("keybook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan event handler."""
    logger.info(f"Starting {config.app.title} v{config.app.version}")
    logger.info(f"Workspace directory: {config.paths.workspace}")

    FileUtils.ensure_directory(Path(config.paths.workspace), mode=permissions.DIRECTORY_MODE)
    Path(config.paths.logs).mkdir(parents=True, exist_ok=True)

    yield

    logger.info(f"Shutting down {config.app.title}")


app = FastAPI(
    title=config.app.title,
    version=config.app.version,
    debug=config.app.debug,
    description="""
    **KeyBook** - an executable catalog of OpenSSL key and certificate workflows.

    Every operation runs the `openssl` binary and returns the exact command it ran,
    with passphrases masked.

    ## Features
    - Browse and render the OpenSSL command catalog
    - Generate RSA, ECDSA and Ed25519 keys, extract public keys, convert to PKCS#8
    - Self-signed certificates, CSRs and CSR signing with SANs
    - Random secrets, PEM/DER conversion, PKCS#12 export and extraction
    - Certificate inspection, expiry checks, chain verification and TLS handshake tests
    - File permission audit for the key workspace

    ## Documentation
    - **Swagger UI**: `/docs`
    - **ReDoc**: `/redoc`
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(keys.router)
app.include_router(certs.router)
app.include_router(csrs.router)
app.include_router(secret.router)
app.include_router(convert.router)
app.include_router(tls.router)
app.include_router(files.router)
app.include_router(download.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    try:
        openssl_version = OpenSSLService(config.paths.openssl).version()
    except RuntimeError as e:
        logger.error(f"OpenSSL unavailable: {e}")
        openssl_version = None
    return {
        "status": "healthy" if openssl_version else "degraded",
        "version": config.app.version,
        "openssl": openssl_version,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="localhost", port=8000, reload=config.app.debug)
