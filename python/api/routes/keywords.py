"""
Category Keyword API Routes

Manage the keyword rules used for automatic categorization.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from csv_import import ImportStore, group_keywords

from ..auth import Household, get_current_household
from ..database import get_store

router = APIRouter(prefix="/keywords", tags=["keywords"])


class KeywordCreate(BaseModel):
    category_id: str
    keyword: str


@router.get("")
def list_keywords(
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> dict:
    """All keywords grouped by category ID."""
    grouped = group_keywords(store.list_keywords(household.id))
    return {
        category_id: [k.to_dict() for k in keywords]
        for category_id, keywords in grouped.items()
    }


@router.get("/{category_id}")
def list_category_keywords(
    category_id: str,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> list[dict]:
    """Keywords for a single category."""
    return [k.to_dict() for k in store.list_keywords(household.id, category_id)]


@router.post("", status_code=201)
def add_keyword(
    body: KeywordCreate,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> dict:
    """Add a keyword to a category."""
    try:
        keyword = store.add_keyword(household.id, body.category_id, body.keyword)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return keyword.to_dict()


@router.delete("/{keyword_id}")
def delete_keyword(
    keyword_id: str,
    household: Household = Depends(get_current_household),
    store: ImportStore = Depends(get_store),
) -> dict:
    """Delete a keyword."""
    if not store.delete_keyword(household.id, keyword_id):
        raise HTTPException(status_code=404, detail="Keyword not found")

    return {"message": "Keyword deleted", "keyword_id": keyword_id}
