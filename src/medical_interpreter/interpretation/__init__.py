# ============================================================================
# src/medical_interpreter/interpretation/__init__.py
# ============================================================================
"""
Report interpretation: prompt, AI-output normalization and record assembly.
"""

from .assembler import Attribution, InterpretationRecord, ResultAssembler
from .service import ReportInterpreter

__all__ = [
    "Attribution",
    "InterpretationRecord",
    "ResultAssembler",
    "ReportInterpreter",
]
