"""StayLedger — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from stayledger.api.errors import register_exception_handlers
from stayledger.api.v1.auth import router as auth_router
from stayledger.api.v1.bookings import router as bookings_router
from stayledger.api.v1.properties import router as properties_router
from stayledger.api.v1.tours import router as tours_router
from stayledger.config import settings

# Configure root logger so all stayledger.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    yield
    # Shutdown: dispose engine connections
    from stayledger.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Reservations for properties and tour packages with atomic availability checks.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# Routers
app.include_router(auth_router)
app.include_router(properties_router)
app.include_router(tours_router)
app.include_router(bookings_router)

# Locally stored images and payment evidence.
app.mount(settings.media_url_prefix, StaticFiles(directory=settings.media_root, check_dir=False), name="media")


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
