import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AppError, RateLimitExceeded

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)
from app.domains.audit.router import router as audit_router
from app.domains.health_records.router import router as health_records_router
from app.domains.imports.router import build_router as build_import_router
from app.domains.imports.variants import VARIANTS

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Domain routers
for variant in VARIANTS:
    app.include_router(
        build_import_router(variant),
        prefix=f"{settings.API_V1_PREFIX}/pets",
        tags=[f"{variant.name}-import"],
    )
app.include_router(
    health_records_router,
    prefix=f"{settings.API_V1_PREFIX}/pets",
    tags=["health-records"],
)
app.include_router(
    audit_router,
    prefix=f"{settings.API_V1_PREFIX}/pets",
    tags=["audit"],
)
