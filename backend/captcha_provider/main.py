from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import inspect

from captcha_provider.config import settings
from captcha_provider.database import Base, engine
from captcha_provider.logging_config import setup_logging
from captcha_provider.middleware.logging import LoggingMiddleware
from captcha_provider.middleware.rate_limit import limiter
from captcha_provider.paths import API_PREFIX
from captcha_provider.routers import admin, captcha, pow_challenges, verify
from captcha_provider.scheduler import shutdown_scheduler, start_scheduler

# Database tables are managed by Alembic migrations
# Run: cd backend && alembic upgrade head

logger = structlog.get_logger()


def check_database_tables() -> None:
    """Refuse to start against a database that has not been migrated."""
    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(missing)}. "
            "Run `alembic upgrade head` from backend/ before starting the provider."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - check schema, start/stop scheduler."""
    setup_logging()
    check_database_tables()
    start_scheduler()
    logger.info("provider_started", provider_url=settings.provider_url)
    yield
    shutdown_scheduler()


app = FastAPI(
    title="Captcha Provider",
    description="Image and proof-of-work captcha provider with Merkle-committed datasets",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last so it wraps everything, including CORS and error responses
app.add_middleware(LoggingMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = structlog.contextvars.get_contextvars().get("correlation_id", "")
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
        headers={"X-Correlation-ID": correlation_id},
    )


# Routers
app.include_router(captcha.router, prefix=API_PREFIX, tags=["image"])
app.include_router(pow_challenges.router, prefix=API_PREFIX, tags=["pow"])
app.include_router(verify.router, prefix=API_PREFIX, tags=["verify"])
app.include_router(admin.router, prefix=API_PREFIX, tags=["admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
