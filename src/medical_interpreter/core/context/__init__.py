# ============================================================================
# src/medical_interpreter/core/context/__init__.py
# ============================================================================
"""
Interpretation data model
"""

from .enums import ConsensusStrategy, Flag, SectionType, Severity
from .finding import Finding

__all__ = [
    "ConsensusStrategy",
    "Finding",
    "Flag",
    "SectionType",
    "Severity",
]
