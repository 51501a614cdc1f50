# ============================================================================
# src/medical_interpreter/lab/merge.py
# ============================================================================
"""
Finding merge and reference-range matching.

AI findings take precedence over text-extracted ones. Identity is the
case-insensitive trimmed test name.
"""

from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import extraction_settings
from ..core.context import Finding
from ..utils.text_normalizer import normalize_test_key
from .patterns import describe, normalize_flag


def merge_findings(ai_findings: Sequence[Finding], extracted: Sequence[Finding]) -> List[Finding]:
    """
    Merge AI findings with extracted findings.

    - an AI finding missing a reference range borrows it from its extracted twin
    - an extracted finding with no AI counterpart is appended
    - duplicate test names keep their first occurrence
    """
    merged: List[Finding] = []
    position: Dict[str, int] = {}

    for finding in ai_findings:
        if finding.key in position:
            continue
        position[finding.key] = len(merged)
        merged.append(finding)

    for finding in extracted:
        index = position.get(finding.key)
        if index is None:
            position[finding.key] = len(merged)
            merged.append(finding)
            continue
        current = merged[index]
        if not current.has_reference_range and finding.has_reference_range:
            merged[index] = current.with_reference_range(finding.reference_range)

    return merged


def _tokens(name: str) -> List[str]:
    return [token for token in normalize_test_key(name).replace("-", " ").split() if token]


def match_reference_range(
    test: str,
    ranges: Mapping[str, str],
    overlap: Optional[float] = None,
) -> Optional[str]:
    """
    Find the range for ``test`` among ``ranges`` (test name -> range).

    Preference order across all candidates: exact name, substring either
    way, then word overlap of at least ``overlap`` of the shorter name's
    word count (best overlap wins, earliest on ties).
    """
    if overlap is None:
        overlap = extraction_settings.RANGE_TOKEN_OVERLAP

    key = normalize_test_key(test)
    if not key:
        return None

    candidates = [(normalize_test_key(name), value) for name, value in ranges.items() if value]

    for name, value in candidates:
        if name == key:
            return value

    for name, value in candidates:
        if name and (name in key or key in name):
            return value

    wanted = set(_tokens(test))
    best_value: Optional[str] = None
    best_score = 0.0
    for name, value in candidates:
        offered = set(_tokens(name))
        shortest = min(len(wanted), len(offered))
        if not shortest:
            continue
        shared = len(wanted & offered)
        if shared >= overlap * shortest:
            score = shared / shortest
            if score > best_score:
                best_score = score
                best_value = value
    return best_value


def apply_reference_ranges(findings: Sequence[Finding], ranges: Mapping[str, str]) -> List[Finding]:
    """Fill missing ranges from ``ranges``; findings that already have one are untouched."""
    updated: List[Finding] = []
    for finding in findings:
        if finding.has_reference_range:
            updated.append(finding)
            continue
        matched = match_reference_range(finding.test, ranges)
        if matched:
            finding = finding.with_reference_range(matched)
            if finding.source == "text":
                finding = _refresh_interpretation(finding)
        updated.append(finding)
    return updated


def _refresh_interpretation(finding: Finding) -> Finding:
    return replace(
        finding,
        interpretation=describe(normalize_flag(finding.flag), finding.reference_range),
    )
