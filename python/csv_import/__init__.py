"""
CSV Import Module

Handles statement CSV parsing, keyword/history categorization, duplicate
detection, and atomic bulk import for household transactions.
"""

from .config import ImportSettings
from .csv_parser import (
    CSVStructureError,
    FileValidation,
    ParsedTransaction,
    ParseResult,
    RowError,
    StatementCSVParser,
    decode_csv_bytes,
    parse_csv,
    validate_csv_file,
)
from .merchant_lookup import MerchantLookup, MerchantPattern, extract_merchant_name
from .category_matcher import (
    CategoryKeyword,
    CategoryMatch,
    CategoryMatcher,
    Confidence,
    MatchType,
    group_keywords,
    match_categories,
    match_category,
)
from .duplicate_detector import (
    DuplicateDetector,
    DuplicateMatch,
    ExistingTransaction,
    description_similarity,
    filter_duplicates,
    find_duplicates,
)
from .store import ImportStore, InvalidHouseholdError
from .bulk_importer import (
    BulkImporter,
    BulkImportTransaction,
    ImportErrorItem,
    ImportResult,
    learn_merchant_pattern,
)

__all__ = [
    "ImportSettings",
    # CSV Parsing
    "CSVStructureError",
    "FileValidation",
    "ParsedTransaction",
    "ParseResult",
    "RowError",
    "StatementCSVParser",
    "decode_csv_bytes",
    "parse_csv",
    "validate_csv_file",
    # Merchant Lookup
    "MerchantLookup",
    "MerchantPattern",
    "extract_merchant_name",
    # Categorization
    "CategoryKeyword",
    "CategoryMatch",
    "CategoryMatcher",
    "Confidence",
    "MatchType",
    "group_keywords",
    "match_categories",
    "match_category",
    # Duplicate Detection
    "DuplicateDetector",
    "DuplicateMatch",
    "ExistingTransaction",
    "description_similarity",
    "filter_duplicates",
    "find_duplicates",
    # Persistence
    "ImportStore",
    "InvalidHouseholdError",
    # Bulk Import
    "BulkImporter",
    "BulkImportTransaction",
    "ImportErrorItem",
    "ImportResult",
    "learn_merchant_pattern",
]
