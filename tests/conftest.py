"""
Pytest configuration and fixtures for CSV import tests.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from csv_import import ImportSettings, ImportStore  # noqa: E402
from csv_import.schema import categories, households, metadata  # noqa: E402

HOUSEHOLD_ID = "11111111-1111-1111-1111-111111111111"
OTHER_HOUSEHOLD_ID = "22222222-2222-2222-2222-222222222222"

GROCERIES = "c0000000-0000-0000-0000-000000000001"
FUEL = "c0000000-0000-0000-0000-000000000002"
DINING = "c0000000-0000-0000-0000-000000000003"
OTHER_HOUSEHOLD_CATEGORY = "c0000000-0000-0000-0000-000000000099"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def settings() -> ImportSettings:
    """Default import settings, independent of config files."""
    return ImportSettings()


@pytest.fixture
def engine():
    """In-memory SQLite engine with the import schema and seed data."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)

    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with engine.begin() as conn:
        conn.execute(households.insert(), [
            {"id": HOUSEHOLD_ID, "name": "Test Household", "created_at": now},
            {"id": OTHER_HOUSEHOLD_ID, "name": "Neighbours", "created_at": now},
        ])
        conn.execute(categories.insert(), [
            {"id": GROCERIES, "household_id": HOUSEHOLD_ID, "name": "Groceries"},
            {"id": FUEL, "household_id": HOUSEHOLD_ID, "name": "Fuel"},
            {"id": DINING, "household_id": HOUSEHOLD_ID, "name": "Dining"},
            {"id": OTHER_HOUSEHOLD_CATEGORY, "household_id": OTHER_HOUSEHOLD_ID, "name": "Groceries"},
        ])

    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> ImportStore:
    """Import store backed by the SQLite engine."""
    return ImportStore(engine)


@pytest.fixture
def sample_csv_content() -> str:
    """Return sample statement CSV content."""
    return """Date,Amount,Description
2024-01-15,100.50,GROCERY STORE
2024-01-16,-50.25,GAS STATION
"""


@pytest.fixture
def sample_import_rows() -> list[dict]:
    """Three valid reviewed rows for bulk import."""
    return [
        {
            "category_id": GROCERIES,
            "amount": 100.50,
            "description": "WALMART SUPERCENTER",
            "date": "2024-01-15",
            "match_type": "keyword",
        },
        {
            "category_id": FUEL,
            "amount": 50.25,
            "description": "SHELL OIL 12345",
            "date": "2024-01-16",
            "match_type": "historical",
        },
        {
            "category_id": DINING,
            "amount": 12.00,
            "description": "CORNER BAKERY CAFE",
            "date": "2024-01-17",
            "match_type": "none",
        },
    ]


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ.setdefault("ENVIRONMENT", "development")
    yield
