"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, settings
from database.engine import close_db, create_engine, create_session_factory, init_db
from api.routes import health
from api.routes.v1 import applications, invitations, jobs, negotiations

# Import middleware components
from core.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> FastAPI:
    """
    Build the application.

    The database engine and session factory are owned by the lifespan unless
    a session factory is passed in, in which case the caller owns it.
    """
    app_settings = app_settings or settings

    setup_logging(
        log_level=app_settings.log_level,
        json_logs=app_settings.json_logs,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {app_settings.app_name} in {app_settings.app_env} environment")
        engine = None
        if getattr(app.state, "session_factory", None) is None:
            engine = create_engine(
                app_settings.database_url,
                echo=app_settings.database_echo,
                pool_size=app_settings.database_pool_size,
            )
            await init_db(engine)
            app.state.session_factory = create_session_factory(engine)

        yield

        logger.info(f"Shutting down {app_settings.app_name}")
        if engine is not None:
            await close_db(engine)

    app = FastAPI(
        title=app_settings.app_name,
        description="Job marketplace for dental clinics and professionals",
        version="0.1.0",
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory

    # Setup error handlers (before middleware)
    setup_error_handlers(app)

    # Middleware executes in reverse order of registration
    # 1. Authentication (innermost - resolves the caller identity)
    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=app_settings.jwt_secret_key,
        jwt_algorithm=app_settings.jwt_algorithm,
        verify_signature=app_settings.jwt_verify_signature,
        issuer=app_settings.cognito_issuer,
        client_id=app_settings.cognito_client_id,
    )

    # 2. Structured logging (logs all requests/responses)
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=app_settings.log_request_body,
        log_response_body=app_settings.log_response_body,
        max_body_size=app_settings.log_max_body_size,
    )

    # 3. Error handling (catches anything the handlers did not)
    app.add_middleware(ErrorHandlingMiddleware)

    # 4. CORS (outermost - answers preflight before authentication)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=False,
        allow_methods=app_settings.cors_methods,
        allow_headers=app_settings.cors_headers,
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API routes
    for module in (jobs, applications, invitations, negotiations):
        app.include_router(module.router, prefix=app_settings.api_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
