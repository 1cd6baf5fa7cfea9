"""
FundHub Backend — FastAPI Application Entry Point

Configures the FastAPI application, includes all routers, sets up CORS
and logging, and initializes the database on startup.

Architecture:
    - FastAPI application with auto-generated OpenAPI docs at /docs
    - All routers mounted under the /api prefix
    - Database tables created on startup via lifespan event

Environment:
    LOG_LEVEL     logging level name (default INFO)
    CORS_ORIGINS  comma-separated allowed origins

Usage:
    python -m uvicorn fundhub.main:app --host 127.0.0.1 --port 8060
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import init_db
from .routers import structures, waterfall_tiers, distributions

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fundhub.api")

_DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", ",".join(_DEFAULT_ORIGINS)).split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """On startup: create tables if they don't exist."""
    init_db()
    logger.info("FundHub API ready")
    yield


app = FastAPI(
    title="FundHub Investment Manager API",
    description=(
        "REST API for fund structures, investor commitments, "
        "waterfall distribution tiers and distributions."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(structures.router)       # /api/structures
app.include_router(waterfall_tiers.router)  # /api/waterfall-tiers
app.include_router(distributions.router)    # /api/distributions


@app.get("/")
def root():
    """Service information."""
    return {
        "name": "FundHub API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "structures": "/api/structures",
            "waterfall_tiers": "/api/waterfall-tiers",
            "distributions": "/api/distributions",
        },
    }


@app.get("/health")
def health_check():
    """Liveness probe."""
    return {"status": "healthy"}
