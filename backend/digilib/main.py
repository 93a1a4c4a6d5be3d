from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession

from digilib.core.config import settings
from digilib.core.backend import Backend, create_backend, get_backend, get_db
from digilib.core.exceptions import DigiLibError, error_response
from digilib.core.logging_config import logger
from digilib.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from digilib.api.v1.router import api_router
from digilib.models import MaterialCategory
from digilib.services.seeder import LibrarySeeder


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if settings.STORAGE_MODE.lower() not in ("local", "s3", "minio"):
        errors.append(f"STORAGE_MODE '{settings.STORAGE_MODE}' is not one of local, s3, minio")

    if settings.STORAGE_MODE.lower() == "minio" and not settings.AWS_ACCESS_KEY_ID:
        warnings.append("MinIO selected without AWS_ACCESS_KEY_ID - uploads will fail")

    if not settings.ALLOWED_CONTENT_TYPES:
        errors.append("ALLOWED_CONTENT_TYPES_STR is empty - no upload could ever be accepted")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] ✓ Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    # Step 1: Validate critical configuration (fail fast!)
    await validate_critical_config()

    # Step 2: Build the backend unless one was provided (tests inject their own)
    owns_backend = getattr(app.state, "backend", None) is None
    if owns_backend:
        app.state.backend = create_backend(settings)
    backend: Backend = app.state.backend
    await backend.startup()

    # Step 3: Seed the sample library on a fresh catalog
    if backend.settings.SEED_ON_STARTUP:
        await LibrarySeeder(backend).ensure_seeded()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    if owns_backend:
        await backend.dispose()
        app.state.backend = None


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Digital library for general and academic materials with admin moderation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add middleware (order matters - last added runs first)
# 1. Request logging
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. CORS - Origins from CORS_ORIGINS_STR in .env
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(DigiLibError)
async def digilib_exception_handler(request: Request, exc: DigiLibError):
    if exc.http_status >= 500:
        logger.error(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = str(first.get("loc", [None])[-1]) if first.get("loc") else None
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": first.get("msg", "Invalid request"),
                "details": {"field": field} if field else {},
            }
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if settings.DEBUG else "An error occurred",
                "details": {},
            }
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root(
    db: AsyncSession = Depends(get_db),
    backend: Backend = Depends(get_backend)
):
    """Home page data: welcome message and catalog counts"""
    repository = backend.repository
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "counts": {
            "general": await repository.count(db, category=MaterialCategory.GENERAL, approved=True),
            "academic": await repository.count(db, category=MaterialCategory.ACADEMIC, approved=True),
            "pending": await repository.count(db, approved=False),
        },
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


def main():
    import uvicorn
    uvicorn.run(
        "digilib.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    main()
