# ============================================================================
# src/medical_interpreter/core/context/finding.py
# ============================================================================
"""
Single abnormal lab finding
- Produced by the text extractor or by AI JSON normalization
- Identity is the case-insensitive trimmed test name
"""

from dataclasses import dataclass, replace
from typing import Any, Dict

from ...utils.text_normalizer import normalize_test_key


@dataclass(frozen=True)
class Finding:
    test: str
    value: str
    unit: str = ""
    reference_range: str = ""   # "min - max" or empty
    flag: str = ""              # Flag value
    severity: str = ""          # Severity value
    interpretation: str = ""
    source: str = "ai"          # "ai" | "text"

    @property
    def key(self) -> str:
        return normalize_test_key(self.test)

    @property
    def has_reference_range(self) -> bool:
        return bool(self.reference_range and self.reference_range.strip())

    def with_reference_range(self, reference_range: str) -> "Finding":
        return replace(self, reference_range=reference_range)

    def to_dict(self) -> Dict[str, Any]:
        """Storage shape (camelCase, provenance dropped)."""
        return {
            "test": self.test,
            "value": self.value,
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "interpretation": self.interpretation,
            "flag": self.flag,
            "severity": self.severity,
        }
