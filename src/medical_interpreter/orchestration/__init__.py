# ============================================================================
# src/medical_interpreter/orchestration/__init__.py
# ============================================================================
"""
Provider orchestration: sequential fallback and concurrent consensus.
"""

from .fallback import FallbackOrchestrator, GenerationResult
from .consensus import ConsensusOrchestrator, ConsensusResult, synthesize, union_sequences, vote

__all__ = [
    "FallbackOrchestrator",
    "GenerationResult",
    "ConsensusOrchestrator",
    "ConsensusResult",
    "synthesize",
    "union_sequences",
    "vote",
]
