"""
FastAPI Application — InfluxDB Starter

Sample application built on InfluxDB: ingest values, query downsampled
aggregates and register downsampling/alerting tasks.

This is a teaching application. It omits authenticating requests and
other practices a real production deployment needs.
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from influx_starter.config import settings
from .routes import router


# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


WELCOME_MESSAGE = "Welcome to your first InfluxDB Application!!"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the InfluxDB target once at startup."""
    logger.info(
        f"listening on port {settings.PORT}, "
        f"writing to {settings.INFLUXDB_HOST} bucket {settings.INFLUXDB_BUCKET!r}"
    )
    yield


# Application metadata
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Sample InfluxDB ingestion, query and task API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_request(request: Request, call_next):
    """Log every incoming request before routing it."""
    logger.info(f"A new request was received at {int(time.time() * 1000)}")
    return await call_next(request)


# Include API routes
app.include_router(router, tags=["InfluxDB"])


@app.get("/", response_class=PlainTextResponse, tags=["Health"])
async def root():
    """Static welcome text."""
    return WELCOME_MESSAGE


@app.get("/ping", tags=["Health"])
async def ping():
    """Lightweight heartbeat — no DB."""
    return {"status": "ok"}


def run() -> None:
    """Serve the application on the configured port (8080 by default)."""
    # A server exposed on the internet needs properly configured timeouts,
    # certificates, etc.
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
