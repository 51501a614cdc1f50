# ============================================================================
# src/medical_interpreter/core/context/enums.py
# ============================================================================
"""
Interpretation Enums
- Abnormal flags and severities
- Consensus strategies and section types
"""

from enum import Enum


class Flag(str, Enum):
    HIGH = "High"
    LOW = "Low"
    CRITICAL_HIGH = "Critical High"
    CRITICAL_LOW = "Critical Low"
    NONE = ""


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    LOW = "low"
    NONE = ""


class ConsensusStrategy(str, Enum):
    SINGLE = "single"                  # exactly one provider answered
    MULTI_PROVIDER = "multi-provider"  # JSON vote across providers
    FALLBACK = "fallback"              # no response parsed as JSON
    VALIDATED = "validated"            # free text corroborated by others


class SectionType(str, Enum):
    JSON = "json"
    TEXT = "text"
