"""
Database Connection Module

Provides the PostgreSQL engine and the import store used by the API.
"""

import os
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from csv_import import ImportSettings, ImportStore

# Database URL from environment
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('POSTGRES_USER', 'household')}:"
    f"{os.getenv('POSTGRES_PASSWORD', 'password')}@"
    f"{os.getenv('POSTGRES_HOST', 'localhost')}:"
    f"{os.getenv('POSTGRES_PORT', '5432')}/"
    f"{os.getenv('POSTGRES_DB', 'household_budget')}"
)

# Upper bound on any single statement, including the bulk insert
STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "30000"))


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create the shared engine on first use."""
    connect_args = {}
    if DATABASE_URL.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={STATEMENT_TIMEOUT_MS}"

    return create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args=connect_args,
    )


def get_store() -> ImportStore:
    """Import store for FastAPI dependency injection."""
    return ImportStore(get_engine())


@lru_cache(maxsize=1)
def get_settings() -> ImportSettings:
    """Import settings for FastAPI dependency injection."""
    return ImportSettings.load()
