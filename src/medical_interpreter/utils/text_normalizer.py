# ============================================================================
# src/medical_interpreter/utils/text_normalizer.py
# ============================================================================
"""
Text Normalization Utilities

Cleans up OCR/PDF text before lab-value extraction:
- Collapses tabs and whitespace runs
- Drops blank and separator-only lines ("-----", "=====", "....")
- Keeps the raw (stripped) line so column gaps survive for segmentation
"""

import re
from dataclasses import dataclass
from typing import List

_LINE_BREAK = re.compile(r"\r?\n+")
_TABS = re.compile(r"\t+")
_WHITESPACE = re.compile(r"\s+")
_SEPARATOR = re.compile(r"^[-=._*~|\s]+$")


@dataclass(frozen=True)
class NormalizedLine:
    """One cleaned document line."""
    index: int
    text: str   # whitespace collapsed
    raw: str    # original spacing, tabs turned into double spaces


def collapse_whitespace(text: str) -> str:
    """Replace tabs and whitespace runs with a single space."""
    return _WHITESPACE.sub(" ", _TABS.sub(" ", text or "")).strip()


def normalize_lines(text: str, min_length: int = 4) -> List[NormalizedLine]:
    """
    Split document text into cleaned lines.

    Lines shorter than ``min_length`` characters after collapsing, and lines
    made only of separator characters, are dropped. Indices are renumbered
    over the surviving lines.
    """
    lines: List[NormalizedLine] = []
    for raw_line in _LINE_BREAK.split(text or ""):
        collapsed = collapse_whitespace(raw_line)
        if not collapsed or _SEPARATOR.match(collapsed):
            continue
        if len(collapsed) < min_length:
            continue
        raw = _TABS.sub("  ", raw_line).strip()
        lines.append(NormalizedLine(index=len(lines), text=collapsed, raw=raw))
    return lines


def normalize_test_key(name: str) -> str:
    """Identity key for a test name: trimmed, case-folded, single-spaced."""
    return collapse_whitespace(name).casefold()
