"""
FastAPI entrypoint for the Collecte back office API.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from collecte.core.config import settings
from collecte.core.exceptions import ConfigMissingError, ConcurrentUpdateConflict
from collecte.api.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Collecte API",
    description="Back office API for provider fee collection",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConcurrentUpdateConflict)
async def concurrent_update_handler(request: Request, exc: ConcurrentUpdateConflict):
    """Retries exhausted on a settlement write: transient, ask the client to retry."""
    logger.error(f"Settlement update failed after retries: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Settlement update failed, retry"},
    )


@app.exception_handler(ConfigMissingError)
async def config_missing_handler(request: Request, exc: ConfigMissingError):
    """Fee configuration missing: refuse to compute anything."""
    logger.error("Request aborted: fee configuration is missing")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Fee configuration unavailable"},
    )


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Collecte API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
