import asyncio
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .logging_config import configure_logging
from .database import init_db, get_sessionmaker
from .auth import ensure_default_admin
from .errors import AssetTrackerError, StorageError, ValidationError
from .services.codes import CodeGenerator
from .services.mailer import SmtpMailer
from .services.report import ReportRenderer
from .services.sessions import SessionManager, build_session_manager
from .api.health import router as health_router
from .api.auth import router as auth_router
from .api.assets import router as assets_router
from .api.history import router as history_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    session_manager: SessionManager | None = None,
    mailer=None,
    code_generator=None,
    report_renderer=None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title="Asset Tracker", version="0.1.0")
    app.state.session_manager = session_manager or build_session_manager(settings)
    app.state.mailer = mailer or SmtpMailer(settings)
    app.state.code_generator = code_generator or CodeGenerator()
    app.state.report_renderer = report_renderer or ReportRenderer()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        # Bounds the response only. Sync handlers run in the threadpool and keep
        # running past the timeout; SMTP and database calls carry their own.
        try:
            response = await asyncio.wait_for(
                call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.error("Request %s %s timed out", request.method, request.url.path)
            response = JSONResponse(
                status_code=504,
                content={"success": False, "error": "Request timed out.", "code": "timeout"},
            )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(AssetTrackerError)
    async def asset_tracker_error_handler(request: Request, exc: AssetTrackerError):
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                exc.code,
                request.method,
                request.url.path,
                exc.context,
                exc_info=exc,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=ValidationError().to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content=StorageError().to_dict())

    @app.on_event("startup")
    def startup() -> None:
        init_db()
        SessionLocal = get_sessionmaker()
        db = SessionLocal()
        try:
            ensure_default_admin(db)
        finally:
            db.close()

    app.include_router(health_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(assets_router, prefix="/api")
    app.include_router(history_router, prefix="/api")

    return app


app = create_app()
