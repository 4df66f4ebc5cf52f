"""
Bulk Importer Module

Commits a reviewed import batch for one household as a single atomic unit,
then learns merchant patterns from the rows the user categorized by hand.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from .category_matcher import MatchType
from .config import ImportSettings
from .merchant_lookup import extract_merchant_name
from .store import ImportStore, InvalidHouseholdError

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class BulkImportTransaction:
    """A reviewed transaction ready to be committed."""

    category_id: str | None
    amount: Any
    description: str | None
    date: str | None
    # Matcher verdict shown during review; NONE means the user picked the category
    match_type: MatchType | str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BulkImportTransaction":
        return cls(
            category_id=data.get("category_id"),
            amount=data.get("amount"),
            description=data.get("description"),
            date=data.get("date"),
            match_type=data.get("match_type"),
        )

    @property
    def was_manually_categorized(self) -> bool:
        if self.match_type is None:
            return False
        try:
            return MatchType(self.match_type) is MatchType.NONE
        except ValueError:
            return False


@dataclass(frozen=True)
class ImportErrorItem:
    index: int
    message: str

    def to_dict(self) -> dict:
        return {"index": self.index, "message": self.message}


@dataclass
class ImportResult:
    """Outcome of a bulk import call."""

    success: bool
    imported_count: int = 0
    failed_count: int = 0
    errors: list[ImportErrorItem] = field(default_factory=list)
    replayed: bool = False
    status_unknown: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "imported": self.imported_count,
            "failed": self.failed_count,
            "errors": [e.to_dict() for e in self.errors],
            "replayed": self.replayed,
            "status_unknown": self.status_unknown,
        }


class _UnknownCategories(Exception):
    """Aborts the commit transaction when rows reference foreign categories."""

    def __init__(self, indexes: list[int]):
        super().__init__(f"{len(indexes)} rows reference unknown categories")
        self.indexes = indexes


@dataclass
class _ValidRow:
    index: int
    category_id: str
    amount: Decimal
    description: str
    date: str
    manual: bool


class BulkImporter:
    """Validates and atomically commits import batches."""

    def __init__(
        self,
        store: ImportStore,
        settings: ImportSettings | None = None,
        clock: Callable[[], datetime] | None = None
    ):
        """Initialize the importer.

        Args:
            store: Household-scoped store
            settings: Import limits
            clock: Returns the current UTC time; injectable for tests
        """
        self.store = store
        self.settings = settings or ImportSettings()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def bulk_import(
        self,
        household_id: str,
        transactions: list[BulkImportTransaction | dict],
        idempotency_key: str | None = None
    ) -> ImportResult:
        """Import a batch of transactions for a household.

        Every row is revalidated. If any row is invalid nothing is written.
        Otherwise all rows are inserted in one database transaction, or
        none are. A repeated idempotency key returns the recorded outcome
        without inserting again.

        Args:
            household_id: Owning household
            transactions: Reviewed transactions, in review order
            idempotency_key: Optional caller token for safe retries

        Returns:
            ImportResult
        """
        txns = [
            t if isinstance(t, BulkImportTransaction) else BulkImportTransaction.from_dict(t)
            for t in transactions
        ]

        valid_rows, errors = self._validate(txns)

        if errors:
            logger.info(
                f"Rejected import for household {household_id}: "
                f"{len(errors)} of {len(txns)} rows invalid"
            )
            return ImportResult(
                success=False,
                imported_count=0,
                failed_count=len(errors),
                errors=errors,
            )

        if not valid_rows:
            return ImportResult(success=True)

        result = self._commit(household_id, valid_rows, idempotency_key)

        if result.success and not result.replayed:
            self._learn_patterns(household_id, valid_rows)

        return result

    def _validate(
        self,
        txns: list[BulkImportTransaction]
    ) -> tuple[list[_ValidRow], list[ImportErrorItem]]:
        valid_rows = []
        errors = []

        for index, txn in enumerate(txns):
            try:
                valid_rows.append(self._validate_row(index, txn))
            except ValueError as e:
                errors.append(ImportErrorItem(index=index, message=str(e)))

        return valid_rows, errors

    def _validate_row(self, index: int, txn: BulkImportTransaction) -> _ValidRow:
        """Check one row. Raises ValueError with the first failing rule."""
        category_id = str(txn.category_id).strip() if txn.category_id is not None else ""
        if not category_id:
            raise ValueError("Category is required")

        amount = _to_amount(txn.amount)
        if amount is None or amount <= 0:
            raise ValueError("Invalid amount")
        if amount > self.settings.max_amount:
            raise ValueError("Amount exceeds maximum allowed value")
        amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if amount == 0:
            raise ValueError("Invalid amount")

        date_str = str(txn.date).strip() if txn.date is not None else ""
        if not DATE_PATTERN.match(date_str):
            raise ValueError("Invalid date format")
        try:
            datetime.strptime(date_str, "%Y-%m-%d")
        except ValueError:
            raise ValueError("Invalid date value")

        description = str(txn.description).strip() if txn.description is not None else ""
        if not description:
            raise ValueError("Description is required")
        if len(description) > self.settings.max_description_length:
            raise ValueError(
                f"Description must be {self.settings.max_description_length} characters or less"
            )

        return _ValidRow(
            index=index,
            category_id=category_id,
            amount=amount,
            description=description,
            date=date_str,
            manual=txn.was_manually_categorized,
        )

    def _commit(
        self,
        household_id: str,
        rows: list[_ValidRow],
        idempotency_key: str | None
    ) -> ImportResult:
        """Insert every row in one transaction."""
        now = self.clock()

        try:
            with self.store.transaction() as conn:
                if not self.store.household_exists(conn, household_id):
                    raise InvalidHouseholdError("Invalid household ID")

                if idempotency_key:
                    self.store.purge_expired_keys(conn, now)
                    expires_at = now + timedelta(hours=self.settings.idempotency_ttl_hours)
                    claimed = self.store.claim_idempotency_key(
                        conn, household_id, idempotency_key, now, expires_at
                    )
                    if not claimed:
                        recorded = self.store.get_idempotency_result(
                            conn, household_id, idempotency_key
                        )
                        logger.info(
                            f"Idempotency key already processed for household "
                            f"{household_id}; skipping insert"
                        )
                        return ImportResult(
                            success=True,
                            imported_count=recorded or 0,
                            replayed=True,
                        )

                unknown = self.store.unknown_categories(
                    conn, household_id, {row.category_id for row in rows}
                )
                if unknown:
                    raise _UnknownCategories(
                        [row.index for row in rows if row.category_id in unknown]
                    )

                imported = self.store.insert_transactions(conn, household_id, [
                    {
                        "category_id": row.category_id,
                        "amount": row.amount,
                        "description": row.description,
                        "date": datetime.strptime(row.date, "%Y-%m-%d").date(),
                        "type": "expense",
                    }
                    for row in rows
                ])

                if idempotency_key:
                    self.store.record_idempotency_result(
                        conn, household_id, idempotency_key, imported
                    )

        except InvalidHouseholdError as e:
            return self._failed(rows, [ImportErrorItem(0, f"Import failed: {e}")])

        except _UnknownCategories as e:
            return self._failed(
                rows,
                [ImportErrorItem(i, "Import failed: Category not found") for i in e.indexes],
            )

        except DBAPIError as e:
            if not (isinstance(e, OperationalError) or e.connection_invalidated):
                logger.error(f"Import failed for household {household_id}: {e}")
                return self._failed(rows, [ImportErrorItem(0, f"Import failed: {e}")])

            logger.error(f"Import commit status unknown for household {household_id}: {e}")
            result = self._failed(rows, [ImportErrorItem(
                0,
                "Import status unknown: the database connection failed. "
                "Retry with the same idempotency key.",
            )])
            result.status_unknown = True
            return result

        except SQLAlchemyError as e:
            logger.error(f"Import failed for household {household_id}: {e}")
            return self._failed(rows, [ImportErrorItem(0, f"Import failed: {e}")])

        logger.info(f"Imported {imported} transactions for household {household_id}")

        return ImportResult(success=True, imported_count=imported)

    @staticmethod
    def _failed(rows: list[_ValidRow], errors: list[ImportErrorItem]) -> ImportResult:
        return ImportResult(
            success=False,
            imported_count=0,
            failed_count=len(rows),
            errors=errors,
        )

    def _learn_patterns(self, household_id: str, rows: list[_ValidRow]) -> None:
        """Upsert merchant patterns for manually categorized rows.

        Failures are logged and never affect the import result.
        """
        pairs: dict[tuple[str, str], None] = {}
        for row in rows:
            if not row.manual:
                continue
            merchant = extract_merchant_name(row.description, self.settings.processor_prefixes)
            if merchant:
                pairs[(merchant, row.category_id)] = None

        now = self.clock()
        learned = 0
        for merchant, category_id in pairs:
            try:
                self.store.upsert_merchant_pattern(household_id, merchant, category_id, now)
                learned += 1
            except Exception as e:
                logger.warning(f"Failed to learn merchant pattern '{merchant}': {e}")

        if pairs:
            logger.info(f"Learned {learned} of {len(pairs)} merchant patterns")


def learn_merchant_pattern(
    store: ImportStore,
    household_id: str,
    merchant_name: str,
    category_id: str,
    now: datetime | None = None
) -> None:
    """Learn a merchant pattern from a single manual category choice.

    Raises:
        ValueError: If the merchant name or category is missing
    """
    if not merchant_name or not merchant_name.strip():
        raise ValueError("Merchant name is required")
    if not category_id or not category_id.strip():
        raise ValueError("Category is required")

    with store.transaction() as conn:
        if store.unknown_categories(conn, household_id, [category_id]):
            raise ValueError("Category not found")

    store.upsert_merchant_pattern(
        household_id,
        merchant_name.strip().lower(),
        category_id,
        now or datetime.now(timezone.utc),
    )


def _to_amount(value: Any) -> Decimal | None:
    """Coerce a submitted amount to a finite Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None
