# main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from routers import auth, users, reports
from config import Settings, load_settings
from database import create_engine_with_retry, make_session_factory, create_tables, test_connection
from errors import CityFixError, InternalError
from schemas import ErrorResponse
from services.blob_store import LocalBlobStore
from services.reports import ReportRegistry
from services.users import UserRegistry
from util.security import AccessGate, CredentialStore, TokenService
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and ensure the bootstrap admin before serving"""
    logger.info("Starting CityFix API...")

    if not create_tables(app.state.engine):
        raise RuntimeError("Database tables could not be created")

    await app.state.user_registry.ensure_bootstrap_admin()
    logger.info("Startup completed successfully")

    yield

    logger.info("Shutting down CityFix API...")
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; fails before serving if configuration is incomplete"""
    settings = settings or load_settings()

    # Token service first: a missing secret must stop construction
    tokens = TokenService(settings.jwt_secret, expire_hours=settings.token_expire_hours)
    credentials = CredentialStore(rounds=settings.bcrypt_rounds)

    engine = create_engine_with_retry(settings.database_url)
    session_factory = make_session_factory(engine)

    app = FastAPI(
        title="CityFix API",
        description="API for citizens reporting municipal issues",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_service = tokens
    app.state.access_gate = AccessGate(tokens)
    app.state.user_registry = UserRegistry(
        session_factory,
        credentials,
        tokens,
        admin_email=settings.admin_email,
        admin_password=settings.admin_password,
        admin_name=settings.admin_name,
    )
    app.state.report_registry = ReportRegistry(session_factory)
    app.state.blob_store = LocalBlobStore(settings.upload_dir, max_bytes=settings.max_upload_bytes)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Uploaded report photos
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(reports.router)

    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return "CityFix API running"

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        db_status = test_connection(app.state.engine)
        return {
            "status": "healthy" if db_status else "degraded",
            "service": "cityfix-api",
            "database": "connected" if db_status else "disconnected",
            "version": "1.0.0",
        }

    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CityFixError)
    async def cityfix_error_handler(request: Request, exc: CityFixError):
        if exc.status_code >= 500:
            logger.error(f"{exc.category} on {request.method} {request.url.path}: {exc.__cause__ or exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, category=exc.category).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "category": "validation_error",
                # Echoing the input would send back request bodies, passwords included
                "details": [
                    {"loc": jsonable_encoder(error.get("loc")), "msg": error.get("msg")}
                    for error in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = InternalError()
        return JSONResponse(
            status_code=error.status_code,
            content=ErrorResponse(error=error.message, category=error.category).model_dump(),
        )


if __name__ == "__main__":
    import uvicorn
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_level="info"
    )
