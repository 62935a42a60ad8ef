"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import os
import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


def _install_schema(db_url: str) -> None:
    from sqlalchemy import create_engine
    from database.init_db import init_db

    engine = create_engine(db_url)
    try:
        init_db(bind=engine, text_search_config="portuguese")
    finally:
        engine.dispose()


@pytest.fixture(scope="session")
def test_database():
    """
    Session-scoped fixture that automatically manages the test database container.

    Uses testcontainers to start a PostgreSQL with PostGIS container before
    tests and stops it after all tests complete. Falls back to external
    database if TEST_DATABASE_URL is set.
    """
    # If TEST_DATABASE_URL is set, use external database
    external_url = os.environ.get("TEST_DATABASE_URL")
    if external_url:
        from tests import check_db_available
        if check_db_available():
            _install_schema(external_url)
            yield external_url
            return
        else:
            pytest.skip("External database not available")

    # Try to use testcontainers for automatic container management
    try:
        from testcontainers.postgres import PostgresContainer

        postgres = PostgresContainer(
            image="postgis/postgis:16-3.4",
            username="testuser",
            password="testpass",
            dbname="ofertas_test",
            port=5432
        )
        postgres.start()
    except Exception as e:
        pytest.skip(f"Could not start test database container: {e}")

    try:
        db_url = postgres.get_connection_url()
        _install_schema(db_url)
        print(f"\n✓ Test database started: {db_url}")

        yield db_url
    finally:
        # Cleanup after all tests
        postgres.stop()
        print("\n✓ Test database stopped")


@pytest.fixture(scope="session")
def db_engine(test_database):
    """Engine bound to the test database."""
    from sqlalchemy import create_engine

    engine = create_engine(test_database, pool_pre_ping=True)
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def session_factory(db_engine):
    from sqlalchemy.orm import sessionmaker

    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def clean_tables(db_engine):
    """Empty offer and user tables before a test."""
    from sqlalchemy import text

    with db_engine.connect() as conn:
        conn.execute(text("TRUNCATE TABLE offer, users CASCADE"))
        conn.commit()
    yield
