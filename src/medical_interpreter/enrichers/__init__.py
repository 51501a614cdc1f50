# ============================================================================
# src/medical_interpreter/enrichers/__init__.py
# ============================================================================
"""
Optional enrichment collaborators (medications, specialists, videos, global statistics).
"""

from .base import Enricher, EnrichmentErrorKind, EnrichmentOutcome, UpstreamError
from .cache import MemoCache

__all__ = [
    "Enricher",
    "EnrichmentErrorKind",
    "EnrichmentOutcome",
    "UpstreamError",
    "MemoCache",
]
