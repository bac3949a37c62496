"""
Shared fixtures: hand-built catalog, settings, search factory and an
in-memory SQLite database.
"""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from src.config.settings import RefinementSettings
from src.refinement.cache import SearchCache, search_cache
from src.refinement.metrics import reset_metrics
from src.refinement.search import RefinementSearch
from src.sql.catalog.catalog import CatalogSnapshot
from tests.helpers import build_catalog


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh metrics and process-wide cache for every test."""
    reset_metrics()
    search_cache.clear()
    yield
    reset_metrics()
    search_cache.clear()


@pytest.fixture
def catalog() -> CatalogSnapshot:
    return build_catalog()


@pytest.fixture
def config() -> RefinementSettings:
    return RefinementSettings(similarity_backend="lexical")


@pytest.fixture
def make_search(catalog, config):
    """Build a RefinementSearch over the hand-built catalog with a private cache."""

    def factory(executor, **overrides) -> RefinementSearch:
        session_config = config.model_copy(update=overrides) if overrides else config
        return RefinementSearch(executor, catalog, config=session_config, cache=SearchCache())

    return factory


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite database shared by every connection (StaticPool)."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE departments (id INTEGER PRIMARY KEY, name TEXT NOT NULL, location TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE employees ("
            " id INTEGER PRIMARY KEY,"
            " name TEXT NOT NULL,"
            " department TEXT,"
            " department_id INTEGER REFERENCES departments(id),"
            " salary REAL)"
        ))
        conn.execute(text(
            "CREATE TABLE projects ("
            " id INTEGER PRIMARY KEY,"
            " title TEXT NOT NULL,"
            " department_id INTEGER REFERENCES departments(id))"
        ))
        conn.execute(text(
            "INSERT INTO departments (id, name, location) VALUES"
            " (1, 'Engineering', 'Berlin'), (2, 'Sales', 'Paris'), (3, 'Marketing', 'Paris')"
        ))
        conn.execute(text(
            "INSERT INTO employees (id, name, department, department_id, salary) VALUES"
            " (1, 'Ada', 'Engineering', 1, 120000),"
            " (2, 'Linus', 'Engineering', 1, 110000),"
            " (3, 'Grace', 'Sales', 2, 90000),"
            " (4, 'Edsger', 'Marketing', 3, 80000)"
        ))
        conn.execute(text(
            "INSERT INTO projects (id, title, department_id) VALUES (1, 'Compiler', 1), (2, 'Campaign', 3)"
        ))
    yield engine
    engine.dispose()
