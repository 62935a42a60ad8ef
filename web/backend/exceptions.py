#!/usr/bin/env python3
"""
Custom exceptions and error handlers for the web application.
"""

import logging
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.search.errors import (
    FilterValidationError,
    SearchCancelledError,
    SearchError,
    SearchTimeoutError,
)

logger = logging.getLogger(__name__)


class ServiceException(Exception):
    """Base exception for service layer errors."""
    pass


class OfferNotFoundException(ServiceException):
    """Raised when an offer is not found."""
    pass


async def service_exception_handler(
    request: Request,
    exc: ServiceException
) -> JSONResponse:
    """
    Handle service layer exceptions.

    Args:
        request: The FastAPI request.
        exc: The service exception.

    Returns:
        JSONResponse with error details.
    """
    status_code = 500
    if isinstance(exc, OfferNotFoundException):
        status_code = 404
        logger.info(f"Not found in {request.url.path}: {exc}")
    else:
        logger.error(f"Service error in {request.url.path}: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": str(exc),
            "type": exc.__class__.__name__
        }
    )


async def search_exception_handler(
    request: Request,
    exc: SearchError
) -> JSONResponse:
    """
    Handle search engine errors.

    Filter validation errors carry their reason and field back to the
    client; store failures are reported with a generic message only (the
    engine has already logged the details).
    """
    if isinstance(exc, FilterValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": exc.reason,
                "field": exc.field,
                "type": "FilterValidationError"
            }
        )

    if isinstance(exc, SearchTimeoutError):
        status_code, message = 504, "Search timed out"
    elif isinstance(exc, SearchCancelledError):
        status_code, message = 503, "Search cancelled"
    else:
        status_code, message = 500, "Internal server error"

    logger.warning(f"Search failed in {request.url.path}: {exc.__class__.__name__}")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "type": exc.__class__.__name__
        }
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Report malformed query parameters in the same shape as filter errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc") or ()
    field = str(loc[-1]) if loc else None

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": first.get("msg", "Invalid request"),
            "field": field,
            "type": "ValidationError"
        }
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.

    Args:
        request: The FastAPI request.
        exc: The HTTP exception.

    Returns:
        JSONResponse with error details.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "type": "HTTPException"
        }
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: The FastAPI request.
        exc: The exception.

    Returns:
        JSONResponse with error details.
    """
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": "InternalError"
        }
    )
