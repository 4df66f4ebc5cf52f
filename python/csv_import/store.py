"""
Import Store Module

Household-scoped persistence for the import pipeline: atomic bulk insert,
idempotency keys, keyword rules, merchant patterns, and the stored
transaction read path used for duplicate detection.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterable, Iterator

from sqlalchemy import delete, select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine

from .category_matcher import CategoryKeyword
from .duplicate_detector import ExistingTransaction
from .merchant_lookup import MerchantPattern
from .schema import (
    categories,
    category_keywords,
    idempotency_keys,
    merchant_patterns,
    transactions,
)

logger = logging.getLogger(__name__)

MAX_KEYWORD_LENGTH = 100


class InvalidHouseholdError(Exception):
    """Raised when a write targets a household that does not exist."""


class ImportStore:
    """Relational store for one deployment, queried per household."""

    def __init__(self, engine: Engine):
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine (PostgreSQL in production, SQLite in tests)
        """
        self.engine = engine

    def _insert(self, table):
        """Dialect insert construct supporting ON CONFLICT."""
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        if self.engine.dialect.name == "sqlite":
            return sqlite.insert(table)
        raise NotImplementedError(f"Unsupported database dialect: {self.engine.dialect.name}")

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Connection wrapped in a transaction; commits on exit, rolls back on error."""
        with self.engine.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    def household_exists(self, conn: Connection, household_id: str) -> bool:
        row = conn.execute(
            text("SELECT 1 FROM households WHERE id = :id"),
            {"id": household_id},
        ).first()
        return row is not None

    def unknown_categories(
        self,
        conn: Connection,
        household_id: str,
        category_ids: Iterable[str]
    ) -> set[str]:
        """Return the category IDs that do not belong to the household."""
        wanted = set(category_ids)
        if not wanted:
            return set()

        found = conn.execute(
            select(categories.c.id).where(
                categories.c.household_id == household_id,
                categories.c.id.in_(wanted),
            )
        ).scalars().all()

        return wanted - set(found)

    def insert_transactions(
        self,
        conn: Connection,
        household_id: str,
        rows: list[dict]
    ) -> int:
        """Insert all rows with a single statement on the given connection.

        Args:
            conn: Connection inside the caller's transaction
            household_id: Owning household
            rows: Dicts with category_id, amount, description, date

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        now = datetime.now(timezone.utc)
        values = [
            {
                "id": str(uuid.uuid4()),
                "household_id": household_id,
                "category_id": row["category_id"],
                "amount": row["amount"],
                "description": row["description"],
                "date": row["date"],
                "type": row.get("type", "expense"),
                "created_at": now,
            }
            for row in rows
        ]

        conn.execute(transactions.insert(), values)
        return len(values)

    # ------------------------------------------------------------------
    # Idempotency keys
    # ------------------------------------------------------------------

    def purge_expired_keys(self, conn: Connection, now: datetime) -> int:
        result = conn.execute(
            delete(idempotency_keys).where(idempotency_keys.c.expires_at < now)
        )
        return result.rowcount or 0

    def claim_idempotency_key(
        self,
        conn: Connection,
        household_id: str,
        key: str,
        now: datetime,
        expires_at: datetime
    ) -> bool:
        """Record a key for the household if it is not already recorded.

        Returns:
            True if the key was newly claimed, False if it was already used
        """
        stmt = self._insert(idempotency_keys).values(
            id=str(uuid.uuid4()),
            household_id=household_id,
            key=key,
            created_at=now,
            expires_at=expires_at,
        ).on_conflict_do_nothing(index_elements=["household_id", "key"])

        result = conn.execute(stmt)
        return result.rowcount == 1

    def get_idempotency_result(
        self,
        conn: Connection,
        household_id: str,
        key: str
    ) -> int | None:
        return conn.execute(
            select(idempotency_keys.c.imported_count).where(
                idempotency_keys.c.household_id == household_id,
                idempotency_keys.c.key == key,
            )
        ).scalar()

    def record_idempotency_result(
        self,
        conn: Connection,
        household_id: str,
        key: str,
        imported_count: int
    ) -> None:
        conn.execute(
            update(idempotency_keys)
            .where(
                idempotency_keys.c.household_id == household_id,
                idempotency_keys.c.key == key,
            )
            .values(imported_count=imported_count)
        )

    # ------------------------------------------------------------------
    # Merchant patterns
    # ------------------------------------------------------------------

    def upsert_merchant_pattern(
        self,
        household_id: str,
        merchant_name: str,
        category_id: str,
        now: datetime | None = None
    ) -> None:
        """Insert a pattern, or refresh last_used_at if it already exists.

        Runs as one INSERT ... ON CONFLICT statement in its own transaction.
        """
        now = now or datetime.now(timezone.utc)

        stmt = self._insert(merchant_patterns).values(
            id=str(uuid.uuid4()),
            household_id=household_id,
            merchant_name=merchant_name,
            category_id=category_id,
            last_used_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["household_id", "merchant_name", "category_id"],
            set_={"last_used_at": stmt.excluded.last_used_at},
        )

        with self.engine.begin() as conn:
            conn.execute(stmt)

    def list_merchant_patterns(self, household_id: str) -> list[MerchantPattern]:
        """Household merchant patterns, most recently used first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(merchant_patterns)
                .where(merchant_patterns.c.household_id == household_id)
                .order_by(merchant_patterns.c.last_used_at.desc())
            ).mappings().all()

        return [MerchantPattern.from_row(dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Category keywords
    # ------------------------------------------------------------------

    def list_keywords(
        self,
        household_id: str,
        category_id: str | None = None
    ) -> list[CategoryKeyword]:
        """Household keywords ordered by keyword text."""
        query = select(category_keywords).where(category_keywords.c.household_id == household_id)
        if category_id:
            query = query.where(category_keywords.c.category_id == category_id)
        query = query.order_by(category_keywords.c.keyword, category_keywords.c.created_at)

        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        return [CategoryKeyword.from_row(dict(row)) for row in rows]

    def add_keyword(self, household_id: str, category_id: str, keyword: str) -> CategoryKeyword:
        """Add a keyword rule to a category.

        Keywords are trimmed and lowercased for case-insensitive matching.

        Raises:
            ValueError: If the keyword is empty, too long, or already present,
                or the category is not the household's
        """
        if not category_id or not category_id.strip():
            raise ValueError("Category ID is required")
        if not keyword or not keyword.strip():
            raise ValueError("Keyword cannot be empty")
        if len(keyword) > MAX_KEYWORD_LENGTH:
            raise ValueError(f"Keyword must be {MAX_KEYWORD_LENGTH} characters or less")

        normalized = keyword.strip().lower()
        keyword_id = str(uuid.uuid4())

        with self.engine.begin() as conn:
            if self.unknown_categories(conn, household_id, [category_id]):
                raise ValueError("Category not found")

            stmt = self._insert(category_keywords).values(
                id=keyword_id,
                household_id=household_id,
                category_id=category_id,
                keyword=normalized,
                created_at=datetime.now(timezone.utc),
            ).on_conflict_do_nothing(index_elements=["household_id", "category_id", "keyword"])

            if conn.execute(stmt).rowcount != 1:
                raise ValueError("This keyword already exists for this category")

        logger.info(f"Added keyword '{normalized}' to category {category_id}")

        return CategoryKeyword(category_id=category_id, keyword=normalized, id=keyword_id)

    def delete_keyword(self, household_id: str, keyword_id: str) -> bool:
        """Delete a keyword. Returns False if the household has no such keyword."""
        if not keyword_id or not keyword_id.strip():
            raise ValueError("Keyword ID is required")

        with self.engine.begin() as conn:
            result = conn.execute(
                delete(category_keywords).where(
                    category_keywords.c.id == keyword_id,
                    category_keywords.c.household_id == household_id,
                )
            )

        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Stored transactions
    # ------------------------------------------------------------------

    def list_transactions_in_range(
        self,
        household_id: str,
        start_date: date,
        end_date: date
    ) -> list[ExistingTransaction]:
        """Stored transactions dated within [start_date, end_date]."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(
                    transactions.c.id,
                    transactions.c.date,
                    transactions.c.amount,
                    transactions.c.description,
                )
                .where(
                    transactions.c.household_id == household_id,
                    transactions.c.date >= start_date,
                    transactions.c.date <= end_date,
                )
                .order_by(transactions.c.date, transactions.c.created_at)
            ).mappings().all()

        return [ExistingTransaction.from_row(dict(row)) for row in rows]

    def count_transactions(self, household_id: str) -> int:
        with self.engine.connect() as conn:
            return conn.execute(
                text("SELECT COUNT(*) FROM transactions WHERE household_id = :household_id"),
                {"household_id": household_id},
            ).scalar_one()
