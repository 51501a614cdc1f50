# ============================================================================
# src/medical_interpreter/lab/__init__.py
# ============================================================================
"""
Lab-report parsing: abnormal value extraction, merge and range lookup.
"""

from .extractor import LabValueExtractor
from .merge import apply_reference_ranges, match_reference_range, merge_findings
from .reference_ranges import ReferenceRangeEnricher, parse_reference_ranges

__all__ = [
    "LabValueExtractor",
    "apply_reference_ranges",
    "match_reference_range",
    "merge_findings",
    "ReferenceRangeEnricher",
    "parse_reference_ranges",
]
