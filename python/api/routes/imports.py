"""
CSV Import API Routes

Endpoints backing the import review flow: parse, match, duplicate check,
and commit.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from pydantic import BaseModel, Field

from csv_import import (
    BulkImporter,
    BulkImportTransaction,
    CategoryMatcher,
    CSVStructureError,
    DuplicateDetector,
    ImportSettings,
    ImportStore,
    StatementCSVParser,
    decode_csv_bytes,
    group_keywords,
    validate_csv_file,
)
from csv_import.duplicate_detector import date_range

from ..auth import Household, get_current_household
from ..database import get_settings, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])


class MatchTransaction(BaseModel):
    description: str | None = None


class MatchRequest(BaseModel):
    transactions: list[MatchTransaction]


class DuplicateCandidate(BaseModel):
    date: date
    amount: Decimal
    description: str | None = None


class DuplicateRequest(BaseModel):
    transactions: list[DuplicateCandidate]
    similarity_threshold: int | None = Field(None, ge=0, le=100)


class CommitTransaction(BaseModel):
    """Reviewed row; loosely typed so the importer reports bad rows by index."""

    category_id: Any = None
    amount: Any = None
    description: Any = None
    date: Any = None
    match_type: Any = None


class CommitRequest(BaseModel):
    transactions: list[CommitTransaction]
    idempotency_key: str | None = None


@router.post("/parse")
async def parse_statement(
    file: UploadFile = File(...),
    household: Household = Depends(get_current_household),
    settings: ImportSettings = Depends(get_settings),
) -> dict:
    """Validate and parse an uploaded statement.

    Args:
        file: Uploaded CSV file
        household: Current household
        settings: Import limits

    Returns:
        Parsed transactions, row errors, and summary
    """
    content = await file.read(settings.max_file_bytes + 1)

    validation = validate_csv_file(file.filename or "", len(content), settings)
    if not validation.valid:
        raise HTTPException(status_code=400, detail=validation.error)

    try:
        result = StatementCSVParser(settings).parse_content(decode_csv_bytes(content))
    except CSVStructureError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        f"Household {household.id} parsed {file.filename}: "
        f"{result.summary.success}/{result.summary.total} rows valid"
    )

    return result.to_dict()


@router.post("/match")
def match_transactions(
    request: MatchRequest,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
    settings: ImportSettings = Depends(get_settings),
) -> dict:
    """Suggest a category for each transaction, in request order."""
    keywords = group_keywords(store.list_keywords(household.id))
    patterns = store.list_merchant_patterns(household.id)

    matcher = CategoryMatcher(keywords, patterns, settings.processor_prefixes)
    matches = matcher.match_batch(request.transactions)

    return {"matches": [m.to_dict() for m in matches]}


@router.post("/duplicates")
def check_duplicates(
    request: DuplicateRequest,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
    settings: ImportSettings = Depends(get_settings),
) -> dict:
    """Find candidates that are probably already recorded."""
    bounds = date_range(request.transactions)
    if bounds is None:
        return {"duplicates": []}

    existing = store.list_transactions_in_range(household.id, *bounds)

    threshold = request.similarity_threshold
    detector = DuplicateDetector(
        similarity_threshold=threshold if threshold is not None else settings.similarity_threshold,
        amount_tolerance=settings.amount_tolerance,
    )
    duplicates = detector.find_duplicates(request.transactions, existing)

    return {"duplicates": [d.to_dict() for d in duplicates]}


@router.post("/commit")
def commit_import(
    request: CommitRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
    settings: ImportSettings = Depends(get_settings),
) -> dict:
    """Atomically import the reviewed transactions."""
    importer = BulkImporter(store, settings)

    result = importer.bulk_import(
        household.id,
        [BulkImportTransaction.from_dict(t.model_dump()) for t in request.transactions],
        idempotency_key=request.idempotency_key or idempotency_key,
    )

    return result.to_dict()
