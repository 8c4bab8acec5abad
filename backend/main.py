"""
Battery Line MES - Main FastAPI Application
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): Dashboard router; request timeout middleware (504)
v1.1.0 (2026-10-05): Single MesError handler replaces per-route HTTPException mapping
v1.0.0 (2026-09-28): Initial FastAPI application
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncio
import logging

from config import settings, init_directories
from errors import MesError, RequestTimeoutError
from api import admin, dashboard, operations, parts, routes, serials, users, work_orders, ws

init_directories()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(f'{settings.LOGS_DIR}/api.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Initialize database and reference data
    from models import init_db
    from seed import seed_if_empty
    from database import get_db

    await init_db()
    async with get_db() as db:
        await seed_if_empty(db)

    logger.info("Startup complete")

    yield

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Serial/lot traceability and station locking for the battery assembly line",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_timeout(request: Request, call_next):
    """Bound every request by REQUEST_TIMEOUT_S"""
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_S)
    except asyncio.TimeoutError:
        logger.warning(f"{request.method} {request.url.path} timed out after {settings.REQUEST_TIMEOUT_S}s")
        error = RequestTimeoutError(f"Request exceeded {settings.REQUEST_TIMEOUT_S}s")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(MesError)
async def mes_error_handler(request: Request, exc: MesError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API routers
app.include_router(operations.router, prefix="/api")
app.include_router(routes.router, prefix="/api")
app.include_router(parts.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(work_orders.router, prefix="/api")
app.include_router(serials.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(ws.router, prefix="/api/ws", tags=["WebSocket"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "app": settings.APP_NAME
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        workers=settings.API_WORKERS
    )
