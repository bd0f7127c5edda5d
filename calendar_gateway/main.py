"""
Main application entry point - FastAPI app instance and configuration.
Run with: uvicorn calendar_gateway.main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from calendar_gateway.core.config import settings
from calendar_gateway.routers import calendar
from calendar_gateway.services.calendar_service import calendar_service

# ---------------------------------------------------------------------------
# LOGGING
# ---------------------------------------------------------------------------
# One console handler on the package logger; every module logs through a
# child of "calendar_gateway".
package_logger = logging.getLogger("calendar_gateway")
package_logger.setLevel(settings.LOG_LEVEL.upper())

if not package_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    package_logger.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let pending token-rotation writes finish before the process exits
    await calendar_service.resolver.rotation.wait_idle()


# ---------------------------------------------------------------------------
# CREATE FASTAPI APPLICATION
# ---------------------------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(calendar.router)


# ---------------------------------------------------------------------------
# HEALTH CHECK ENDPOINT
# ---------------------------------------------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    """Simple health check for load balancers and uptime monitors."""
    return {"status": "ok"}
