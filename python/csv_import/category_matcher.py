"""
Category Matcher Module

Assigns categories to imported transactions using keyword rules first,
then learned merchant history.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .merchant_lookup import MerchantLookup, MerchantPattern

logger = logging.getLogger(__name__)


class MatchType(Enum):
    """How a category was matched to a transaction."""
    KEYWORD = "keyword"
    HISTORICAL = "historical"
    NONE = "none"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class CategoryKeyword:
    """A keyword rule attached to a category."""

    category_id: str
    keyword: str
    id: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CategoryKeyword":
        return cls(
            category_id=str(row["category_id"]),
            keyword=row["keyword"],
            id=str(row["id"]) if row.get("id") is not None else None,
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "category_id": self.category_id, "keyword": self.keyword}


@dataclass(frozen=True)
class CategoryMatch:
    """Result of matching a transaction to a category."""

    category_id: str | None
    match_type: MatchType
    confidence: Confidence

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "match_type": self.match_type.value,
            "confidence": self.confidence.value,
        }


NO_MATCH = CategoryMatch(category_id=None, match_type=MatchType.NONE, confidence=Confidence.LOW)

KeywordMap = Mapping[str, Sequence[CategoryKeyword | str]]


def group_keywords(keywords: Iterable[CategoryKeyword]) -> dict[str, list[CategoryKeyword]]:
    """Group a flat keyword list by category, keeping first-seen order.

    Args:
        keywords: Keywords in store order

    Returns:
        Dictionary mapping category ID to its keywords
    """
    grouped: dict[str, list[CategoryKeyword]] = {}
    for keyword in keywords:
        grouped.setdefault(keyword.category_id, []).append(keyword)
    return grouped


def _keyword_text(keyword: CategoryKeyword | str) -> str:
    return keyword.keyword if isinstance(keyword, CategoryKeyword) else keyword


def match_by_keyword(description: str, keywords_by_category: KeywordMap) -> str | None:
    """Return the first category with a keyword contained in the description.

    Categories are tried in mapping order, so when two categories both
    match, the one inserted first wins.
    """
    normalized = description.lower()

    for category_id, keywords in keywords_by_category.items():
        for keyword in keywords:
            text = _keyword_text(keyword)
            if text and text in normalized:
                return category_id

    return None


def match_category(
    description: str | None,
    keywords_by_category: KeywordMap,
    merchant_patterns: Iterable[MerchantPattern],
    prefixes: Iterable[str] | None = None
) -> CategoryMatch:
    """Match a transaction description to a category.

    Priority:
    1. Keyword match (high confidence)
    2. Historical merchant pattern (medium confidence)
    3. No match (low confidence, no category)

    Args:
        description: Transaction description
        keywords_by_category: Category ID -> keywords, in priority order
        merchant_patterns: Learned merchant patterns
        prefixes: Processor prefixes stripped before merchant extraction

    Returns:
        CategoryMatch
    """
    return CategoryMatcher(keywords_by_category, merchant_patterns, prefixes).match(description)


def match_categories(
    transactions: Iterable[Any],
    keywords_by_category: KeywordMap,
    merchant_patterns: Iterable[MerchantPattern],
    prefixes: Iterable[str] | None = None
) -> list[CategoryMatch]:
    """Match a batch of transactions, one result per input in the same order.

    Transactions may be objects with a ``description`` attribute or dicts.
    """
    matcher = CategoryMatcher(keywords_by_category, merchant_patterns, prefixes)
    return matcher.match_batch(transactions)


class CategoryMatcher:
    """Matches transactions against one household's keywords and patterns."""

    def __init__(
        self,
        keywords_by_category: KeywordMap,
        merchant_patterns: Iterable[MerchantPattern],
        prefixes: Iterable[str] | None = None
    ):
        """Initialize the matcher.

        Args:
            keywords_by_category: Category ID -> keywords, in priority order
            merchant_patterns: Learned merchant patterns
            prefixes: Processor prefixes stripped before merchant extraction
        """
        self.keywords_by_category = keywords_by_category
        self.lookup = MerchantLookup(merchant_patterns, prefixes)

    def match(self, description: str | None) -> CategoryMatch:
        description = description or ""

        category_id = match_by_keyword(description, self.keywords_by_category)
        if category_id is not None:
            return CategoryMatch(category_id, MatchType.KEYWORD, Confidence.HIGH)

        pattern = self.lookup.find(description)
        if pattern is not None:
            return CategoryMatch(pattern.category_id, MatchType.HISTORICAL, Confidence.MEDIUM)

        return NO_MATCH

    def match_batch(self, transactions: Iterable[Any]) -> list[CategoryMatch]:
        """Match each transaction, preserving input order."""
        results = [self.match(_description_of(txn)) for txn in transactions]

        by_type = {t: 0 for t in MatchType}
        for result in results:
            by_type[result.match_type] += 1

        logger.debug(
            f"Matched {len(results)} transactions: "
            f"{by_type[MatchType.KEYWORD]} keyword, "
            f"{by_type[MatchType.HISTORICAL]} historical, "
            f"{by_type[MatchType.NONE]} unmatched"
        )

        return results


def _description_of(txn: Any) -> str | None:
    if isinstance(txn, Mapping):
        return txn.get("description")
    return getattr(txn, "description", None)
