#!/usr/bin/env python3
"""
Offer Search API - FastAPI Application

Search, ranking and lookup of marketplace service offers.

Usage:
    python -m web.backend.app

Then open:
    - http://localhost:8080/api/offers - Offer search (default port, configurable in config.yaml)
    - http://localhost:8080/docs - API Documentation (Swagger UI)
    - http://localhost:8080/redoc - Alternative API Documentation
"""

import sys
import logging
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from core.search.errors import SearchError
from .config import get_config
from .dependencies import shutdown_search_engine
from .exceptions import (
    ServiceException,
    service_exception_handler,
    search_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    general_exception_handler
)
from .models.responses import HealthResponse
from .routers import offers_router
from .routers.offers import add_rate_limit_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Load configuration
config = get_config()

# Create FastAPI app
app = FastAPI(
    title="Offer Search API",
    description="API for searching and ranking marketplace service offers",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
add_rate_limit_handlers(app)

# Register exception handlers
app.add_exception_handler(SearchError, search_exception_handler)
app.add_exception_handler(ServiceException, service_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(offers_router)


@app.on_event("shutdown")
def on_shutdown():
    shutdown_search_engine()


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "offer-search"}


def main():
    """Run the web server."""
    import uvicorn

    logger.info(f"Starting Offer Search API on {config.web.host}:{config.web.port}")
    logger.info(f"API Docs: http://{config.web.host}:{config.web.port}/docs")

    uvicorn.run(
        "web.backend.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
