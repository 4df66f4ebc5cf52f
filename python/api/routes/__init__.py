"""
API Routes Package

Contains all route modules for the import API.
"""

from .imports import router as imports_router
from .keywords import router as keywords_router
from .merchant_patterns import router as merchant_patterns_router

__all__ = [
    "imports_router",
    "keywords_router",
    "merchant_patterns_router",
]
