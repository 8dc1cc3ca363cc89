import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hms.config import settings
from hms.database import Base, engine
from hms.exception_handlers import register_exception_handlers
from hms.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from hms.middleware.tenant import TenantMiddleware
from hms.routes import auth, tenants, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})")
    # Schema is owned by Alembic; create_all only for throwaway debug databases
    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")
    yield
    await engine.dispose()
    logger.info("Shutting down the application...")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    setup_structured_logging(settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant hospital management API",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Starlette middleware is LIFO: TenantMiddleware runs before the access log is written
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(TenantMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(tenants.router, prefix="/tenants", tags=["Tenants"])
    app.include_router(users.router, prefix="/users", tags=["Users"])

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "version": settings.app_version}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
