"""
Merchant Pattern API Routes

Read learned merchant patterns and record manual categorizations.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from csv_import import ImportStore, learn_merchant_pattern

from ..auth import Household, get_current_household
from ..database import get_store

router = APIRouter(prefix="/merchant-patterns", tags=["merchant-patterns"])


class LearnPatternRequest(BaseModel):
    merchant_name: str
    category_id: str


@router.get("")
def list_merchant_patterns(
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> list[dict]:
    """Household merchant patterns, most recently used first."""
    return [p.to_dict() for p in store.list_merchant_patterns(household.id)]


@router.post("")
def learn_pattern(
    body: LearnPatternRequest,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> dict:
    """Learn or refresh a merchant to category association."""
    try:
        learn_merchant_pattern(store, household.id, body.merchant_name, body.category_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Pattern learned", "merchant_name": body.merchant_name.strip().lower()}
