import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .db.memory_repository import InMemoryExpenseTrackerRepository
from .db.migrate import apply_migrations
from .db.repository import ExpenseTrackerRepository
from .db.sqlite_repository import SqliteExpenseTrackerRepository
from .core import errors
from .routers import expense_groups, health


def build_repository(settings: Settings) -> ExpenseTrackerRepository:
    if settings.repository_backend == "memory":
        return InMemoryExpenseTrackerRepository()
    # Ensure database schema (idempotent) so test-injected fresh DBs have tables
    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        # Failing to init DB is fatal; re-raise after logging
        logging.getLogger("expense_tracker").exception(
            "failed to apply migrations on startup"
        )
        raise
    return SqliteExpenseTrackerRepository(settings.db_path)  # type: ignore[arg-type]


def create_app(
    settings_override: Settings | None = None,
    repository: ExpenseTrackerRepository | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    repository: inject a ready repository (tests); otherwise one is built from
    settings.repository_backend.
    """
    settings = settings_override or get_settings()
    if settings_override is not None:
        settings.init_post_load()
    # Initialize logging early
    init_logging(debug=settings.debug)

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )
    app.state.settings = settings
    app.state.repository = repository or build_repository(settings)

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(expense_groups.router)

    @app.get("/")
    async def root():
        return {"message": "Expense Tracker API", "version": settings.version}

    return app


app = create_app()
