# ============================================================================
# src/medical_interpreter/lab/reference_ranges.py
# ============================================================================
"""
Reference-range enrichment.

Findings that still lack a reference range after the merge are sent to a
low-temperature JSON consensus call that maps test names to standard adult
ranges. When consensus is exhausted the fallback chain is used with Groq
preferred. The step is optional: failures come back as an
EnrichmentOutcome and the findings are left as they were.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from ..config import extraction_settings
from ..core.context import Finding, SectionType
from ..enrichers.base import EnrichmentErrorKind, EnrichmentOutcome
from ..orchestration.consensus import ConsensusOrchestrator
from ..orchestration.fallback import FallbackOrchestrator
from ..providers.base import CallOptions, extract_json_object
from ..utils.exceptions import ConfigurationError, ExhaustionError
from .merge import apply_reference_ranges

REFERENCE_RANGE_SYSTEM_PROMPT = (
    "You are a clinical laboratory expert. Provide standard adult reference "
    "ranges for lab tests. Respond with JSON only."
)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_NOT_AVAILABLE = re.compile(r"^\s*(not available|n/?a|unknown)\s*$", re.IGNORECASE)


def build_reference_range_prompt(findings: Sequence[Finding]) -> str:
    listing = "\n".join(
        f"{i}. {f.test}: {f.value}{(' ' + f.unit) if f.unit else ''}"
        for i, f in enumerate(findings, start=1)
    )
    return (
        "Provide the standard reference range for each of these lab tests.\n\n"
        f"{listing}\n\n"
        "Return ONLY a JSON object in this format:\n"
        '{"reference_ranges": [{"test": "<test name>", "reference_range": "<min - max unit>"}]}\n'
        'Use "Not available" when no standard range exists.'
    )


def parse_reference_ranges(content: str) -> Optional[Dict[str, str]]:
    """
    Parse a reference-range answer into {test name: range}.

    Returns None when no JSON object can be recovered. "Not available"
    entries are dropped. A test named twice keeps its first range.
    """
    data = extract_json_object(_CODE_FENCE.sub("", content or ""))
    if data is None:
        return None

    items = data.get("reference_ranges")
    if not isinstance(items, list):
        return None

    ranges: Dict[str, str] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        test = item.get("test") or item.get("name")
        reference_range = item.get("reference_range") or item.get("referenceRange")
        if not isinstance(test, str) or not isinstance(reference_range, str):
            continue
        if not test.strip() or not reference_range.strip() or _NOT_AVAILABLE.match(reference_range):
            continue
        # Consensus lists are in provider priority order; the first answer wins
        ranges.setdefault(test.strip(), reference_range.strip())
    return ranges


class ReferenceRangeEnricher:
    """Fill missing reference ranges through the providers."""

    def __init__(
        self,
        consensus: Optional[ConsensusOrchestrator] = None,
        fallback: Optional[FallbackOrchestrator] = None,
    ):
        self.fallback = fallback or FallbackOrchestrator()
        self.consensus = consensus or ConsensusOrchestrator(
            registry=self.fallback.registry, fallback=self.fallback
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    async def enrich(self, findings: Sequence[Finding]) -> EnrichmentOutcome[List[Finding]]:
        missing = [f for f in findings if not f.has_reference_range]
        if not missing:
            return EnrichmentOutcome.success(list(findings))

        self.logger.info(f"Looking up reference ranges for {len(missing)} finding(s)")
        messages = [{"role": "user", "content": build_reference_range_prompt(missing)}]
        options = CallOptions(
            temperature=extraction_settings.REFERENCE_RANGE_TEMPERATURE,
            max_tokens=extraction_settings.REFERENCE_RANGE_MAX_TOKENS,
        )

        try:
            content = await self._ask(messages, options)
        except ConfigurationError as e:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.NOT_CONFIGURED, str(e))
        except ExhaustionError as e:
            self.logger.warning(f"Reference-range lookup failed: {e}")
            return EnrichmentOutcome.failure(EnrichmentErrorKind.UPSTREAM_FAILED, str(e))

        ranges = parse_reference_ranges(content)
        if ranges is None:
            return EnrichmentOutcome.failure(
                EnrichmentErrorKind.PARSE_FAILED, "No reference_ranges object in response"
            )
        if not ranges:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No ranges returned")

        enriched = apply_reference_ranges(findings, ranges)
        filled = sum(
            1 for before, after in zip(findings, enriched)
            if not before.has_reference_range and after.has_reference_range
        )
        self.logger.info(f"Filled {filled}/{len(missing)} missing reference range(s)")
        return EnrichmentOutcome.success(enriched)

    async def _ask(self, messages, options: CallOptions) -> str:
        try:
            result = await self.consensus.consensus(
                messages,
                REFERENCE_RANGE_SYSTEM_PROMPT,
                options,
                section_type=SectionType.JSON,
                min_providers=1,
            )
            return result.content
        except (ExhaustionError, ConfigurationError) as e:
            self.logger.info(f"Consensus unavailable for reference ranges ({e}), using fallback chain")

        options.preferred_order = ["groq"]
        generation = await self.fallback.generate(messages, REFERENCE_RANGE_SYSTEM_PROMPT, options)
        return generation.content
