# ============================================================================
# src/medical_interpreter/lab/extractor.py
# ============================================================================
"""
Lab-Value Extractor

Heuristic parser that pulls abnormal lab findings out of OCR/PDF text.

Two strategies over normalized lines:

1. Line-local: a line with a digit and an abnormal flag word (and no
   normal-result token) is split into fields. Delimited rows (pipes,
   column gaps, "Name:") are classified cell by cell; anything else goes
   through the positional parser. A missing range is looked up on the
   neighbouring lines ("Ref: 12-15", "(12 - 15)").
2. Buffer: lines are accumulated from a header-like (digit-free) line and
   parsed as one row once a flag shows up. This recovers entries whose
   name, value and flag sit on separate lines.

Line-local results win; buffered rows only add new tests or fill a
missing reference range.
"""

import logging
import re
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from ..config import extraction_settings
from ..core.context import Finding
from ..utils.text_normalizer import NormalizedLine, collapse_whitespace, normalize_lines
from .patterns import (
    FLAG_REGEX,
    LABELED_RANGE_REGEX,
    PAREN_RANGE_REGEX,
    RANGE_REGEX,
    VALUE_TOKEN,
    describe,
    format_range,
    has_digit,
    is_normal_result,
    is_unit_token,
    last_flag,
    normalize_flag,
    severity_for,
)

_CELL_SPLIT = re.compile(r"\s*\|\s*|\s{2,}|(?<=[A-Za-z\)])\s*:\s*")
_NAME_TRIM = " :-–—|=.,"


class LabValueExtractor:
    """
    Extract abnormal findings from report text.

    Deterministic and free of I/O. extract() never raises.
    """

    def __init__(
        self,
        buffer_ceiling: Optional[int] = None,
        min_line_length: Optional[int] = None,
    ):
        self.buffer_ceiling = buffer_ceiling or extraction_settings.BUFFER_LINE_CEILING
        self.min_line_length = min_line_length or extraction_settings.MIN_LINE_LENGTH
        self.logger = logging.getLogger(self.__class__.__name__)

    def extract(self, document_text: str) -> List[Finding]:
        """Return abnormal findings in document order (empty on failure)."""
        try:
            return self._extract(document_text or "")
        except Exception as e:
            self.logger.error(f"Lab-value extraction failed: {e}", exc_info=True)
            return []

    def _extract(self, document_text: str) -> List[Finding]:
        lines = normalize_lines(document_text, self.min_line_length)
        findings: Dict[str, Finding] = {}
        owner_of_line: Dict[int, str] = {}

        # Pass 1: line-local
        for position, line in enumerate(lines):
            finding = self._parse_line(line, lines, position)
            if finding is None:
                continue
            if finding.key not in findings:
                findings[finding.key] = finding
            owner_of_line[line.index] = finding.key

        line_local = len(findings)

        # Pass 2: buffered multi-line rows
        for row in self._buffered_rows(lines):
            finding = self._parse_fields(" ".join(line.text for line in row))
            if finding is None:
                continue

            owners = [owner_of_line[line.index] for line in row if line.index in owner_of_line]
            key = owners[0] if owners else finding.key
            existing = findings.get(key)

            if existing is None:
                findings[key] = finding
            elif not existing.has_reference_range and finding.has_reference_range:
                findings[key] = _with_range(existing, finding.reference_range)

        self.logger.debug(
            f"Extracted {len(findings)} finding(s) "
            f"({line_local} line-local, {len(findings) - line_local} buffered)"
        )
        return list(findings.values())

    # ------------------------------------------------------------------
    # Line-local strategy
    # ------------------------------------------------------------------

    def _parse_line(
        self,
        line: NormalizedLine,
        lines: List[NormalizedLine],
        position: int,
    ) -> Optional[Finding]:
        if not has_digit(line.text) or last_flag(line.text) is None:
            return None
        if is_normal_result(line.text):
            return None

        finding = self._parse_cells(line.raw) or self._parse_fields(line.text)
        if finding is None or finding.has_reference_range:
            return finding

        for neighbour in (position - 1, position + 1):
            if 0 <= neighbour < len(lines):
                context_range = _context_range(lines[neighbour].text)
                if context_range:
                    return _with_range(finding, context_range)
        return finding

    def _parse_cells(self, raw: str) -> Optional[Finding]:
        """Classify delimited cells; None unless test and value are both found."""
        cells = [cell.strip() for cell in _CELL_SPLIT.split(raw) if cell and cell.strip()]
        if len(cells) < 3:
            return None

        flag_match = last_flag(raw)
        test = value = unit = reference_range = ""

        for cell in cells:
            if FLAG_REGEX.fullmatch(cell):
                continue
            range_match = _range_cell(cell)
            if range_match and not reference_range:
                reference_range = range_match
                continue
            tokens = cell.split()
            if not value and VALUE_TOKEN.match(tokens[0]):
                value = tokens[0]
                if not unit and len(tokens) > 1 and is_unit_token(tokens[1]):
                    unit = tokens[1]
                continue
            if test and not unit and is_unit_token(cell):
                unit = cell
                continue
            if not test and re.search(r"[A-Za-z]", cell) and not value:
                test = cell.strip(_NAME_TRIM)

        if not test or not value or flag_match is None:
            return None
        return _build(test, value, unit, reference_range, flag_match.group(0))

    def _parse_fields(self, text: str) -> Optional[Finding]:
        """
        Positional parser over collapsed text.

        Value is the first bare number, the unit is the unit-shaped token
        right after it, the range is a labeled, parenthesized or bare
        min-max span, and everything before the value is the test name.
        """
        text = collapse_whitespace(text)
        flag_match = last_flag(text)
        if flag_match is None or not has_digit(text):
            return None

        work = text[: flag_match.start()] + " " + text[flag_match.end():]

        reference_range = ""
        range_match = (
            LABELED_RANGE_REGEX.search(work)
            or PAREN_RANGE_REGEX.search(work)
            or _last(RANGE_REGEX.finditer(work))
        )
        if range_match is not None:
            reference_range = format_range(range_match.group(1), range_match.group(2))
            work = work[: range_match.start()] + " " + work[range_match.end():]

        tokens = work.split()
        value_at = next(
            (i for i, token in enumerate(tokens) if VALUE_TOKEN.match(token.rstrip(",;"))),
            None,
        )
        if not value_at:
            return None

        test = " ".join(tokens[:value_at]).strip(_NAME_TRIM)
        value = tokens[value_at].rstrip(",;")
        unit = ""
        if value_at + 1 < len(tokens) and is_unit_token(tokens[value_at + 1]):
            unit = tokens[value_at + 1]

        return _build(test, value, unit, reference_range, flag_match.group(0))

    # ------------------------------------------------------------------
    # Buffer strategy
    # ------------------------------------------------------------------

    def _buffered_rows(self, lines: List[NormalizedLine]) -> Iterator[List[NormalizedLine]]:
        """
        Yield buffered rows that carry an abnormal flag.

        A buffer starts at a digit-free line (the last of consecutive
        headers wins). Rows reporting a normal result, or growing past the
        ceiling without a flag, are dropped.
        """
        buffer: List[NormalizedLine] = []

        for line in lines:
            numeric = has_digit(line.text)
            buffer_has_numbers = any(has_digit(item.text) for item in buffer)

            if not numeric:
                flagged = last_flag(line.text) is not None
                if not buffer_has_numbers or not flagged:
                    buffer = [line]
                    continue
                buffer.append(line)
            elif buffer:
                buffer.append(line)
            else:
                continue

            row = " ".join(item.text for item in buffer)
            if is_normal_result(row):
                buffer = []
            elif last_flag(row) is not None:
                if buffer_has_numbers or numeric:
                    yield list(buffer)
                    buffer = []
            elif len(row) > self.buffer_ceiling:
                buffer = []


def _range_cell(cell: str) -> str:
    match = (
        LABELED_RANGE_REGEX.fullmatch(cell)
        or PAREN_RANGE_REGEX.fullmatch(cell)
        or RANGE_REGEX.fullmatch(cell)
    )
    return format_range(match.group(1), match.group(2)) if match else ""


def _context_range(text: str) -> str:
    """Labeled or parenthesized range on a neighbouring line."""
    if last_flag(text) is not None:
        return ""
    match = LABELED_RANGE_REGEX.search(text)
    if match is None:
        match = PAREN_RANGE_REGEX.search(text)
        if match is None:
            return ""
        # A bare "(a - b)" only counts when the line holds nothing else numeric
        rest = text[: match.start()] + text[match.end():]
        if has_digit(rest):
            return ""
    return format_range(match.group(1), match.group(2))


def _last(matches: Iterator[re.Match]) -> Optional[re.Match]:
    match = None
    for match in matches:
        pass
    return match


def _build(test: str, value: str, unit: str, reference_range: str, flag_word: str) -> Optional[Finding]:
    test = collapse_whitespace(test).strip(_NAME_TRIM)
    if not test or not value or not re.search(r"[A-Za-z]", test):
        return None
    flag = normalize_flag(flag_word)
    return Finding(
        test=test,
        value=value,
        unit=unit,
        reference_range=reference_range,
        flag=flag.value,
        severity=severity_for(flag).value,
        interpretation=describe(flag, reference_range),
        source="text",
    )


def _with_range(finding: Finding, reference_range: str) -> Finding:
    """Attach a range and refresh the interpretation text."""
    return replace(
        finding,
        reference_range=reference_range,
        interpretation=describe(normalize_flag(finding.flag), reference_range),
    )
