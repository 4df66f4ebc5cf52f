"""
FastAPI Backend for Household Import

Provides REST API endpoints for the CSV import review flow.
"""

from .main import app

__all__ = ["app"]
