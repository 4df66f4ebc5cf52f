"""
Database Schema Module

SQLAlchemy table definitions for the tables the import pipeline reads and
writes. Every table carries household_id; all access is household-scoped.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


households = Table(
    "households",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("name", String(100), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
)

categories = Table(
    "categories",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("household_id", String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
    Column("name", String(100), nullable=False),
    Index("idx_categories_household", "household_id"),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("household_id", String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
    Column("category_id", String(36), ForeignKey("categories.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("description", String(100)),
    Column("date", Date, nullable=False),
    Column("type", String(20), nullable=False, default="expense"),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
    Index("idx_transactions_household_date", "household_id", "date"),
)

category_keywords = Table(
    "category_keywords",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("household_id", String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
    Column("category_id", String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
    Column("keyword", String(100), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
    UniqueConstraint("household_id", "category_id", "keyword"),
    Index("idx_category_keywords_household_keyword", "household_id", "keyword"),
)

# merchant_name is stored lowercase
merchant_patterns = Table(
    "merchant_patterns",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("household_id", String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
    Column("merchant_name", Text, nullable=False),
    Column("category_id", String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
    Column("last_used_at", DateTime(timezone=True), nullable=False, default=_now),
    UniqueConstraint("household_id", "merchant_name", "category_id"),
    Index("idx_merchant_patterns_household_merchant", "household_id", "merchant_name"),
)

idempotency_keys = Table(
    "idempotency_keys",
    metadata,
    Column("id", String(36), primary_key=True, default=_uuid),
    Column("household_id", String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
    Column("key", String(200), nullable=False),
    Column("imported_count", Integer),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_now),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("household_id", "key", name="idempotency_keys_household_key_unique"),
    Index("idx_idempotency_keys_expires", "expires_at"),
)
