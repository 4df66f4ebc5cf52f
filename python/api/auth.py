"""
Authentication Module

Resolves the household (tenant) for a request. Session handling lives in
the web app; the API receives the household ID it resolved.
"""

import os

from fastapi import Header, HTTPException, status
from pydantic import BaseModel


class Household(BaseModel):
    """Household the request is scoped to."""

    id: str


async def get_current_household(
    x_household_id: str | None = Header(None, alias="X-Household-ID"),
) -> Household:
    """Get the current household from request headers.

    Args:
        x_household_id: Household ID from header

    Returns:
        Household

    Raises:
        HTTPException: If no household is supplied outside development
    """
    if x_household_id and x_household_id.strip():
        return Household(id=x_household_id.strip())

    # Development mode: fall back to a fixed household
    if os.getenv("ENVIRONMENT", "development") == "development":
        dev_household = os.getenv("DEV_HOUSEHOLD_ID")
        if dev_household:
            return Household(id=dev_household)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
