"""
Main FastAPI application
Onboarding progress tracking, milestones, blockers and analytics
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from onboarding_engine.config import settings
from onboarding_engine.database import init_db
from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.api import progress, analytics, milestones, sync
from onboarding_engine.utils.cache import backup_cache

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _error_body(error: str, message, **extra) -> dict:
    return {"error": error, "message": message, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    """Map engine errors onto JSON responses"""

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(request: Request, exc: SessionNotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("session_not_found", exc.message, session_id=exc.session_id)
        )

    @app.exception_handler(DatabaseError)
    async def database_error(request: Request, exc: DatabaseError):
        logger.error(f"{request.method} {request.url.path} failed: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "database_error",
                exc.message,
                operation=exc.operation,
                detail=repr(exc.cause) if settings.DEBUG and exc.cause else None
            )
        )

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", exc.detail, status_code=exc.status_code)
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again later.",
                detail=str(exc) if settings.DEBUG else None
            )
        )


def create_app() -> FastAPI:
    """Build the API application with routers, middleware and handlers"""

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Progress engine for user onboarding paths",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def timed_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Service status, including whether offline backups are available"""
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "offline_backup": backup_cache.available,
            "timestamp": time.time()
        }

    @app.get("/")
    async def root():
        return {
            "message": "Onboarding Progress Engine API",
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    for module in (progress, analytics, milestones, sync):
        app.include_router(module.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        try:
            init_db()
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            raise
        logger.info("Application startup complete")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "onboarding_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
