"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from access_engine.core.config import settings
from access_engine.core.middleware import setup_middleware
from access_engine.core.exceptions import AccessEngineError

from access_engine.api.permissions import router as permissions_router
from access_engine.api.roles import router as roles_router
from access_engine.api.users import router as users_router, me_router
from access_engine.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("access_engine")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    if settings.PERMISSION_CACHE_ENABLED:
        from access_engine.services.cache_service import cache_service
        if cache_service.health_check():
            logger.info("Redis connected, permission cache active")
        else:
            logger.warning("Redis not available, permissions resolve uncached")

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="Access Engine API",
    description="Role and permission authorization engine",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


# Exception handler for the engine's error taxonomy
@app.exception_handler(AccessEngineError)
async def access_engine_exception_handler(request: Request, exc: AccessEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )

# Register routers
app.include_router(permissions_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/api/admin/health",
    }
