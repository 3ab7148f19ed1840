"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mealcart import __version__
from mealcart.config import get_settings
from mealcart.database import async_engine, init_db
from mealcart.logging_config import LoggingContext, configure_logging, get_logger
from mealcart.routers import shopping_lists_router
from mealcart.schemas import new_id

settings = get_settings()

# Configure logging on module load
configure_logging(settings.log_level, json_format=not settings.is_development)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting Mealcart API")

    await init_db()
    logger.info("Database tables initialized")

    if not settings.ai_configured:
        logger.info("No Anthropic API key configured, using local estimation and matching only")

    yield

    logger.info("Shutting down Mealcart API")
    await async_engine.dispose()


app = FastAPI(
    title="Mealcart API",
    description="Shopping lists aggregated from planned meals",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.allowed_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag log records with the request id for the duration of a request."""
    request_id = request.headers.get("x-request-id") or new_id()[:8]
    with LoggingContext(request_id=request_id):
        response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


app.include_router(shopping_lists_router)


@app.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok", "service": "mealcart-api"}


@app.get("/")
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "Mealcart API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
