import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api import STATIC_URL, GridRegistry, create_grid_routes
from .config import Config
from .database import DatabaseInterface, get_database, initialize_database, reset_database, set_database
from .demo import register_demo, seed_demo
from .errors import AuthorizationError, NotFoundError, SchemaError, StorageError, ValidationError
from .logging_config import setup_logging
from .middleware import NoCacheMiddleware, RequestLoggingMiddleware

STATIC_DIR = Path(__file__).parent / "static"


async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def storage_error_handler(request: Request, exc: Exception):
    # Details stay in the log; clients get a generic message
    logging.error(f"Grid failure on {request.url.path}: {exc.__class__.__name__}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal database error"})


def create_app(registry: Optional[GridRegistry] = None, database: Optional[DatabaseInterface] = None) -> FastAPI:
    """
    Build the FastAPI application serving the registered grids.

    Args:
        registry: Grids to serve; a fresh registry (plus the demo grid when
            seeding is enabled) when omitted
        database: Backend to install globally; configured from the
            environment when omitted
    """
    setup_logging()
    registry = registry if registry is not None else GridRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # This code runs on server startup
        logging.info("--- gridcrud Starting Up ---")

        if database is not None:
            set_database(database)
            database.create_db_and_tables()
        else:
            initialize_database(Config.get_database_config())

        if Config.SEED_DEMO:
            active = get_database()
            seed_demo(active)
            register_demo(registry, active)

        yield
        # This code runs on server shutdown
        logging.info("--- gridcrud Shutting Down ---")
        if database is None:
            reset_database()

    app = FastAPI(
        title="gridcrud",
        description="Inline-editable database grids over a small AJAX edit protocol.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Edit protocol responses must never be cached
    app.add_middleware(NoCacheMiddleware)

    app.add_exception_handler(AuthorizationError, authorization_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(SchemaError, storage_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)

    app.mount(STATIC_URL, StaticFiles(directory=str(STATIC_DIR)), name="gridcrud-static")
    app.include_router(create_grid_routes(registry))

    @app.get("/")
    def read_root():
        return {"message": "gridcrud is running.", "grids": registry.names()}

    app.state.registry = registry
    return app


app = create_app()
