"""
Land Registry API - Main Application
FastAPI backend for land parcel registration and verification
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging
import os
import time

from landregistry.config import settings
from landregistry.database import check_db_connection, init_db
from landregistry.exceptions import RegistryError, StorageError
from landregistry.routers import auth_router, parcels_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

HTTP_ERROR_KINDS = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle events: startup and shutdown
    """
    logger.info("Starting %s...", settings.app_name)

    if check_db_connection():
        logger.info("Database connection OK")
        if not settings.is_production:
            init_db()
    else:
        logger.error("Database connection FAILED")

    yield

    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Land parcel registry: registration, verification and map queries",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Exception handlers
@app.exception_handler(RegistryError)
async def registry_exception_handler(request: Request, exc: RegistryError):
    """
    Domain errors carry their own kind and HTTP status
    """
    message = exc.message
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message)
        if not settings.debug:
            message = "Storage error, please try again later"
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": message, "kind": exc.kind}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"detail": errors or "Invalid request", "kind": "validation_error"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": HTTP_ERROR_KINDS.get(exc.status_code, "error")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Handler for unhandled exceptions
    """
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.debug:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "kind": "error",
                "type": type(exc).__name__
            }
        )
    else:
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "kind": "error"}
        )


# Root endpoint
@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.debug else "disabled"
    }


# Health check
@app.get("/health")
async def health_check():
    db_ok = check_db_connection()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "database": "connected" if db_ok else "disconnected",
        "environment": settings.app_env
    }


# Routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(parcels_router, prefix=settings.api_prefix)

# Uploaded documents
os.makedirs(settings.upload_folder, exist_ok=True)
app.mount(
    settings.documents_url_prefix,
    StaticFiles(directory=settings.upload_folder, check_dir=False),
    name="documents",
)


# Local development
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "landregistry.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
