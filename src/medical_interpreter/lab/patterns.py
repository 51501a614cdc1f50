# ============================================================================
# src/medical_interpreter/lab/patterns.py
# ============================================================================
"""
Lab Report Patterns

Regexes and small helpers shared by the extractor and the merge step:
- Abnormal flag words and their canonical Flag/Severity
- "Normal result" tokens
- Reference ranges (bare, labeled, parenthesized)
- Value and unit token shapes
"""

import re
from typing import Optional

from ..core.context import Flag, Severity

FLAG_TERMS = [
    "critical high",
    "critical low",
    "very high",
    "very low",
    "above normal",
    "below normal",
    "above range",
    "below range",
    "elevated",
    "reduced",
    "high",
    "low",
]

FLAG_REGEX = re.compile(
    r"\b(" + "|".join(term.replace(" ", r"\s+") for term in FLAG_TERMS) + r")\b",
    re.IGNORECASE,
)

NORMAL_REGEX = re.compile(r"\b(wnl|within normal limits|normal|negative)\b", re.IGNORECASE)

_NUMBER = r"-?\d+(?:\.\d+)?"
_RANGE_BODY = rf"({_NUMBER})\s*(?:-|–|—|to)\s*({_NUMBER})"

RANGE_REGEX = re.compile(_RANGE_BODY, re.IGNORECASE)

LABELED_RANGE_REGEX = re.compile(
    rf"\b(?:ref(?:erence)?\.?|normal|range)(?:\s+(?:range|interval|value|values))?\s*[:=]?\s*\(?\s*{_RANGE_BODY}\s*\)?",
    re.IGNORECASE,
)

PAREN_RANGE_REGEX = re.compile(rf"\(\s*{_RANGE_BODY}\s*\)", re.IGNORECASE)

VALUE_TOKEN = re.compile(r"^[<>]?=?-?\d+(?:[.,]\d+)?$")

UNIT_TOKEN = re.compile(r"^(?:x?10\^?\d+/?)?[A-Za-zµμ%/][A-Za-z0-9µμ%/^.*]*$")

_LABEL_WORDS = {"ref", "ref.", "reference", "range", "result", "value", "units", "unit"}

_DIGIT = re.compile(r"\d")


def has_digit(text: str) -> bool:
    return bool(_DIGIT.search(text or ""))


def last_flag(text: str) -> Optional[re.Match]:
    """Last abnormal flag match in the text, or None."""
    match = None
    for match in FLAG_REGEX.finditer(text or ""):
        pass
    return match


def is_normal_result(text: str) -> bool:
    """
    True when the text reports a normal/negative result.

    Flag phrases ("above normal") and range labels ("Normal: 70-100") are
    masked first so they do not read as a normal result.
    """
    probe = LABELED_RANGE_REGEX.sub(" ", text or "")
    probe = FLAG_REGEX.sub(" ", probe)
    return bool(NORMAL_REGEX.search(probe))


def format_range(low: str, high: str) -> str:
    return f"{low} - {high}"


def is_unit_token(token: str) -> bool:
    if not UNIT_TOKEN.match(token):
        return False
    lowered = token.lower()
    if lowered in _LABEL_WORDS:
        return False
    return not FLAG_REGEX.fullmatch(token) and not NORMAL_REGEX.fullmatch(token)


def normalize_flag(word: str) -> Flag:
    """Map a flag phrase to its canonical Flag."""
    lowered = (word or "").lower()
    if "critical" in lowered:
        if "high" in lowered:
            return Flag.CRITICAL_HIGH
        if "low" in lowered:
            return Flag.CRITICAL_LOW
    if any(term in lowered for term in ("high", "above", "elevated")):
        return Flag.HIGH
    if any(term in lowered for term in ("low", "below", "reduced")):
        return Flag.LOW
    return Flag.NONE


def severity_for(flag: Flag) -> Severity:
    if flag in (Flag.CRITICAL_HIGH, Flag.CRITICAL_LOW):
        return Severity.CRITICAL
    if flag is Flag.HIGH:
        return Severity.HIGH
    if flag is Flag.LOW:
        return Severity.LOW
    return Severity.NONE


def describe(flag: Flag, reference_range: str) -> str:
    """Short interpretation text for an extracted finding."""
    if reference_range:
        return f"{flag.value} value (reference {reference_range})"
    return f"{flag.value} value"
