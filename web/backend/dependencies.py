#!/usr/bin/env python3
"""
FastAPI dependencies for dependency injection.
"""

import logging
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config_loader import SearchConfig
from core.search.engine import OfferSearchEngine
from database.repositories import OfferRepository, PostgresOfferStore, UserRepository
from .config import get_config

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and sessions."""

    def __init__(self):
        config = get_config()
        self.engine = create_engine(
            config.database.url,
            pool_pre_ping=True,  # Verify connections before using
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )


# Global database manager instance
_db_manager = DatabaseManager()
_search_engine: Optional[OfferSearchEngine] = None


def build_search_engine(session_factory: sessionmaker, config: SearchConfig) -> OfferSearchEngine:
    """Wire the search engine to the PostgreSQL offer store."""
    backend = PostgresOfferStore(
        text_search_config=config.text_search_config,
        weights=config.scoring.to_weights(),
    )
    return OfferSearchEngine(
        session_factory=session_factory,
        backend=backend,
        provider_directory_factory=UserRepository,
        offer_repository_factory=OfferRepository,
        config=config,
    )


def get_search_engine() -> OfferSearchEngine:
    """
    FastAPI dependency returning the process-wide search engine.

    The engine owns a worker pool, so it is built once on first use.
    """
    global _search_engine
    if _search_engine is None:
        _search_engine = build_search_engine(_db_manager.SessionLocal, get_config().search)
        logger.info("Offer search engine initialized")
    return _search_engine


def shutdown_search_engine() -> None:
    global _search_engine
    if _search_engine is not None:
        _search_engine.close()
        _search_engine = None
