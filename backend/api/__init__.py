"""
API Route modules.

This package contains modular route files:
- verification: Stateless scoring, merging and date grouping
- results: Stored results and profile reverification
"""

from backend.api.verification import router as verification_router
from backend.api.results import router as results_router

__all__ = [
    'verification_router',
    'results_router',
]
