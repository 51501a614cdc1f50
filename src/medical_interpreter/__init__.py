# ============================================================================
# src/medical_interpreter/__init__.py
# ============================================================================
"""
Medical report interpreter.

Queries a prioritized set of LLM providers (fallback chain or concurrent
consensus), extracts abnormal lab findings from report text, and assembles
one normalized interpretation record.
"""

__version__ = "1.0.0"
