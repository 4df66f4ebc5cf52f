"""
Merchant Lookup Module

Extracts merchant names from statement descriptions and looks them up
against the household's learned merchant patterns.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .config import DEFAULT_PROCESSOR_PREFIXES

logger = logging.getLogger(__name__)

MERCHANT_TOKEN_SPLIT = re.compile(r'[\s-]+')


@dataclass
class MerchantPattern:
    """A learned merchant to category association."""

    merchant_name: str
    category_id: str
    household_id: str | None = None
    last_used_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MerchantPattern":
        return cls(
            merchant_name=row["merchant_name"],
            category_id=str(row["category_id"]),
            household_id=str(row["household_id"]) if row.get("household_id") else None,
            last_used_at=row.get("last_used_at"),
        )

    def to_dict(self) -> dict:
        return {
            "merchant_name": self.merchant_name,
            "category_id": self.category_id,
            "last_used_at": (
                self.last_used_at.isoformat()
                if isinstance(self.last_used_at, datetime)
                else self.last_used_at
            ),
        }


def _prefix_regex(prefixes: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(p) for p in prefixes)
    return re.compile(rf'^({alternatives})', re.IGNORECASE)


_DEFAULT_PREFIX_REGEX = _prefix_regex(DEFAULT_PROCESSOR_PREFIXES)


def extract_merchant_name(
    description: str | None,
    prefixes: Iterable[str] | None = None
) -> str:
    """Extract a merchant name from a transaction description.

    Strips a leading payment-processor prefix, then keeps the first two
    words. "PAYPAL *SPOTIFY P1234" becomes "spotify p1234".

    Args:
        description: Transaction description
        prefixes: Processor prefixes to strip; defaults to PAYPAL/KLARNA/DD

    Returns:
        Lowercase merchant name, or "" if nothing usable remains
    """
    if not description:
        return ""

    regex = _DEFAULT_PREFIX_REGEX if prefixes is None else _prefix_regex(prefixes)
    cleaned = regex.sub('', description, count=1)

    tokens = [t for t in MERCHANT_TOKEN_SPLIT.split(cleaned) if t]

    return " ".join(tokens[:2]).lower()


class MerchantLookup:
    """Matches descriptions against learned merchant patterns."""

    def __init__(
        self,
        patterns: Iterable[MerchantPattern],
        prefixes: Iterable[str] | None = None
    ):
        """Initialize the merchant lookup.

        Args:
            patterns: Household merchant patterns, in priority order
            prefixes: Processor prefixes stripped during extraction
        """
        self.patterns = list(patterns)
        self.prefixes = list(prefixes) if prefixes is not None else None

    def find(self, description: str | None) -> MerchantPattern | None:
        """Find the pattern for a description.

        An exact merchant name match wins; otherwise the first pattern whose
        name contains, or is contained in, the extracted merchant name.

        Args:
            description: Transaction description

        Returns:
            MerchantPattern if found, None otherwise
        """
        merchant = extract_merchant_name(description, self.prefixes)
        if not merchant:
            return None

        for pattern in self.patterns:
            if pattern.merchant_name.lower() == merchant:
                return pattern

        for pattern in self.patterns:
            name = pattern.merchant_name.lower()
            if not name:
                continue
            if name in merchant or merchant in name:
                return pattern

        return None
