"""API route handlers."""

from .offers import router as offers_router
