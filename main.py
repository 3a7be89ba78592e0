# main.py
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from calendar_bridge.auth.google_oauth import GoogleOAuthClient
from calendar_bridge.auth.identity import IdentityResolver, PlaintextEmailIdentity
from calendar_bridge.auth.router import router as auth_router
from calendar_bridge.auth.token_policy import TokenRefreshPolicy
from calendar_bridge.calendar.router import router as calendar_router
from calendar_bridge.calendar.service import CalendarServiceFactory, calendar_service_factory
from calendar_bridge.core.config import Settings, load_settings
from calendar_bridge.core.database import create_db_engine, init_db, make_session_factory, ping
from calendar_bridge.core.dependencies import get_db

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
    calendar_factory: Optional[CalendarServiceFactory] = None,
    identity_resolver: Optional[IdentityResolver] = None,
) -> FastAPI:
    """
    Builds the application with every collaborator passed in explicitly.

    Anything not supplied is built from settings; missing settings raise
    pydantic.ValidationError, which stops the process before it listens.
    """
    settings = settings or load_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    owns_engine = engine is None
    engine = engine or create_db_engine(settings.DATABASE_URL)
    oauth_client = oauth_client or GoogleOAuthClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A database we cannot reach at startup is fatal
        init_db(engine)
        logger.info(f"Frontend URL: {settings.FRONTEND_URL}")
        yield
        if owns_engine:
            engine.dispose()

    app = FastAPI(
        title="Calendar Bridge",
        description="Google sign-in and Calendar proxy for the calendar web client.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.oauth_client = oauth_client
    app.state.token_policy = TokenRefreshPolicy(oauth_client, buffer_seconds=settings.TOKEN_REFRESH_BUFFER_SECONDS)
    app.state.calendar_service_factory = calendar_factory or calendar_service_factory(settings)
    app.state.identity_resolver = identity_resolver or PlaintextEmailIdentity()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    logger.info("Including routers...")
    app.include_router(auth_router)
    app.include_router(calendar_router)

    @app.get("/", tags=["Status"])
    def root():
        return {"message": "Calendar Bridge backend is running!"}

    @app.get("/health", tags=["Status"])
    def health(db: Session = Depends(get_db)):
        if ping(db):
            return {"status": "ok", "database": "connected"}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "database": "disconnected"},
        )

    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run("main:create_app", factory=True, host=settings.HOST, port=settings.PORT)
