"""
Catalog Backend: FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles settings, the store client, the decision
       service, the admission pipeline, routes and the static dispatcher.
Who:   uvicorn (`uvicorn catalog.main:create_app --factory`) and
       `python -m catalog`; tests call create_app() with their own
       collaborators.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Admission Pipeline:                                    │
    │  Body → CORS → Security Headers → Access Log → Decision │
    │                                                         │
    │  Dispatch:                                              │
    │  /test-path │ /api/products │ /api/test │ static (SPA)  │
    │                                                         │
    │  Exception Handlers:                                    │
    │  Validation→400 │ NotFound→404 │ DB→500 │ HTTP errors   │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Log configuration warnings
    3. CREATE TABLE IF NOT EXISTS products (failure is logged, server starts)

    Shutdown:
    1. Close the decision service client
    2. Dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog import __version__
from catalog.config import Settings
from catalog.database import Database
from catalog.exceptions import (
    CatalogError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from catalog.middleware import AdmissionPipelineMiddleware, build_stages
from catalog.routes import diagnostics, products
from catalog.services.decision import DecisionService, build_decision_service
from catalog.services.product_service import ProductService
from catalog.static import FrontendStaticFiles, is_api_path

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # The access stage already logs one line per request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    database: Database = app.state.database

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings)
    logger.info("Catalog backend starting up (environment=%s)", settings.environment)

    for warning in settings.configuration_warnings():
        logger.warning("Configuration: %s", warning)

    # The server keeps running without the table so the frontend and
    # diagnostics stay reachable; product endpoints answer 500 until fixed.
    try:
        await database.init_schema()
    except SQLAlchemyError as e:
        logger.error("Error initializing database: %s", e)
    except OSError as e:
        logger.error("Error initializing database (connection failed): %s", e)

    logger.info("Frontend build directory: %s", settings.frontend_dist_path)
    if settings.is_production:
        logger.info("SPA fallback enabled (production)")
    logger.info("Server ready on %s:%d", settings.host, settings.port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Catalog backend shutting down...")
    await app.state.decision_service.aclose()
    await database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP responses.

        ValidationError          → 400
        RequestValidationError   → 400 (malformed id, non-numeric price, ...)
        NotFoundError            → 404
        DatabaseError            → 500, details logged only
        HTTPException            → its own status (unmatched paths, 405, ...)
        CatalogError / Exception → 500

    API paths always get {"error": ...}; other paths get plain text.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": exc.message, "details": exc.context or None},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        fields = [
            ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": {"fields": fields}},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": exc.message})

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        headers = getattr(exc, "headers", None)
        if is_api_path(request.url.path):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail},
                headers=headers,
            )
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=headers)

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, exc: CatalogError):
        logger.error("Unhandled application error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", exc, exc_info=True)
        if is_api_path(request.url.path):
            return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
        return PlainTextResponse("Internal Server Error", status_code=500)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    decision_service: Optional[DecisionService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be injected; anything omitted is built from
    `settings`, which is itself read from the environment when omitted.
    """
    if settings is None:
        settings = Settings()
    if database is None:
        database = Database.from_settings(settings)
    if decision_service is None:
        decision_service = build_decision_service(settings)

    app = FastAPI(
        title="Catalog API",
        description="Product catalog CRUD API with rate limiting and SPA hosting.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.decision_service = decision_service
    app.state.product_service = ProductService(database)

    # ── Admission Pipeline ────────────────────────────────────────────────
    app.add_middleware(
        AdmissionPipelineMiddleware,
        stages=build_stages(settings, decision_service),
    )

    register_exception_handlers(app)

    # ── Routes (registration order is dispatch order) ─────────────────────
    app.include_router(diagnostics.router)
    app.include_router(products.router)

    # Static assets last: it matches every path not claimed above
    app.mount(
        "/",
        FrontendStaticFiles(
            directory=settings.frontend_dist_path,
            spa_fallback=settings.is_production,
        ),
        name="frontend",
    )

    return app
