"""
Duplicate Transaction Detector Module

Flags imported transactions that are probably already recorded for the
household: same date, same amount, similar description.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence, TypeVar

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExistingTransaction:
    """A transaction already stored for the household."""

    id: str
    date: date | str
    amount: Decimal
    description: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ExistingTransaction":
        return cls(
            id=str(row["id"]),
            date=row["date"],
            amount=Decimal(str(row["amount"])),
            description=row.get("description"),
        )


@dataclass(frozen=True)
class DuplicateMatch:
    """An imported transaction that matches an existing one."""

    import_index: int
    existing_transaction_id: str
    similarity: int

    def to_dict(self) -> dict:
        return {
            "import_index": self.import_index,
            "existing_transaction_id": self.existing_transaction_id,
            "similarity": self.similarity,
        }


def _field(txn: Any, name: str) -> Any:
    if isinstance(txn, Mapping):
        return txn.get(name)
    return getattr(txn, name, None)


def _date_key(value: Any) -> str:
    """Normalize a date or ISO string to YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value or "")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def description_similarity(desc1: str | None, desc2: str | None) -> int:
    """Case-insensitive Levenshtein ratio between two descriptions (0-100)."""
    return round(fuzz.ratio((desc1 or "").lower(), (desc2 or "").lower()))


class DuplicateDetector:
    """Detects probable duplicates between an import batch and stored records."""

    DEFAULT_SIMILARITY_THRESHOLD = 80
    DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")

    def __init__(
        self,
        similarity_threshold: int = DEFAULT_SIMILARITY_THRESHOLD,
        amount_tolerance: Decimal | float = DEFAULT_AMOUNT_TOLERANCE
    ):
        """Initialize the duplicate detector.

        Args:
            similarity_threshold: Minimum description similarity (0-100)
            amount_tolerance: Maximum absolute amount difference
        """
        self.similarity_threshold = similarity_threshold
        self.amount_tolerance = _to_decimal(amount_tolerance)

    def compare(self, candidate: Any, existing: Any) -> tuple[bool, int]:
        """Compare one imported transaction with one stored transaction.

        Date and amount must match before descriptions are compared; a
        mismatch on either reports similarity 0.

        Returns:
            Tuple of (is_duplicate, similarity)
        """
        if _date_key(_field(candidate, "date")) != _date_key(_field(existing, "date")):
            return False, 0

        amount_diff = abs(
            _to_decimal(_field(candidate, "amount")) - _to_decimal(_field(existing, "amount"))
        )
        if amount_diff > self.amount_tolerance:
            return False, 0

        similarity = description_similarity(
            _field(candidate, "description"),
            _field(existing, "description"),
        )

        return similarity >= self.similarity_threshold, similarity

    def check(
        self,
        candidate: Any,
        existing_transactions: Iterable[Any],
        import_index: int = 0
    ) -> DuplicateMatch | None:
        """Check a single transaction, stopping at the first match.

        Args:
            candidate: Transaction to check
            existing_transactions: Stored transactions, in priority order
            import_index: Position of the candidate in its batch

        Returns:
            DuplicateMatch if a duplicate was found, None otherwise
        """
        for existing in existing_transactions:
            is_duplicate, similarity = self.compare(candidate, existing)
            if is_duplicate:
                return DuplicateMatch(
                    import_index=import_index,
                    existing_transaction_id=str(_field(existing, "id")),
                    similarity=similarity,
                )

        return None

    def find_duplicates(
        self,
        candidates: Sequence[Any],
        existing_transactions: Sequence[Any]
    ) -> list[DuplicateMatch]:
        """Find probable duplicates for a batch.

        At most one match is reported per candidate: the first stored
        transaction that satisfies all criteria.

        Args:
            candidates: Transactions being imported
            existing_transactions: Stored transactions to compare against

        Returns:
            List of DuplicateMatch, ordered by import index
        """
        duplicates = []

        for index, candidate in enumerate(candidates):
            match = self.check(candidate, existing_transactions, import_index=index)
            if match:
                duplicates.append(match)

        logger.debug(
            f"Duplicate check: {len(duplicates)} of {len(candidates)} candidates "
            f"match {len(existing_transactions)} existing transactions"
        )

        return duplicates


def find_duplicates(
    candidates: Sequence[Any],
    existing_transactions: Sequence[Any],
    similarity_threshold: int = DuplicateDetector.DEFAULT_SIMILARITY_THRESHOLD
) -> list[DuplicateMatch]:
    """Convenience wrapper around DuplicateDetector.find_duplicates."""
    detector = DuplicateDetector(similarity_threshold=similarity_threshold)
    return detector.find_duplicates(candidates, existing_transactions)


def filter_duplicates(items: Sequence[T], duplicate_indices: Iterable[int]) -> list[T]:
    """Drop the items whose positions were marked as duplicates."""
    skip = set(duplicate_indices)
    return [item for index, item in enumerate(items) if index not in skip]


def date_range(candidates: Iterable[Any]) -> tuple[date, date] | None:
    """Earliest and latest candidate date, for bounding the stored-records query."""
    dates = []
    for candidate in candidates:
        value = _field(candidate, "date")
        if isinstance(value, datetime):
            value = value.date()
        elif not isinstance(value, date):
            value = date.fromisoformat(str(value))
        dates.append(value)

    if not dates:
        return None

    return min(dates), max(dates)
