"""
STI Result Verification - Main FastAPI Application.

Routes are organized in modular files under backend/api/:
- verification.py: Document scoring, merging, date grouping
- results.py: Stored results, profile reverification
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.core.config import get_settings
from backend.core.database import create_db_and_tables

# Import routers
from backend.api.verification import router as verification_router
from backend.api.results import router as results_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.logging.level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="STI Result Verification",
    description="Trust scoring, deduplication and date grouping of extracted STI lab results",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    """Initialize database."""
    create_db_and_tables()


# =============================================================================
# Include Routers
# =============================================================================

# All routes are prefixed with /api/v1
app.include_router(verification_router, prefix="/api/v1")
app.include_router(results_router, prefix="/api/v1")


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/api/v1/health")
def api_health_check():
    """API health check."""
    return {"status": "healthy", "api_version": "v1"}
