# ============================================================================
# src/medical_interpreter/enrichers/statistics.py
# ============================================================================
"""
Global statistics and patient-impact facts for a condition.

One fallback-chain call with online-search models preferred (Perplexity,
directly or through the OpenRouter gateway). The parsed sections are
returned as-is; the assembler normalizes their fields.
"""

from typing import Any, Dict, Optional

from ..config import enrichment_settings
from ..orchestration.fallback import FallbackOrchestrator
from ..providers.base import CallOptions, extract_json_object
from ..utils.exceptions import ConfigurationError, ExhaustionError, ResponseParseError
from .base import Enricher, EnrichmentErrorKind, EnrichmentOutcome

STATISTICS_SYSTEM_PROMPT = (
    "You are a medical epidemiologist with access to real-time medical data. "
    'Return only valid JSON with "global_statistics" and "patient_impact_facts" objects. '
    "Include specific numbers and figures. No markdown code blocks."
)

_SECTIONS = (
    ("global_statistics", "globalStatistics"),
    ("patient_impact_facts", "patientImpactFacts"),
)


def build_statistics_prompt(disease_name: str) -> str:
    return f"""Analyze the condition "{disease_name}" and provide worldwide statistics and patient-impact facts from current sources (WHO, CDC, NIH, peer-reviewed journals).

Every value must carry specific numbers, percentages or ranges, with the year where known. Avoid vague words like "common" or "rare".

Return ONLY this JSON:
{{
  "global_statistics": {{
    "global_prevalence": "", "incidence_rate": "", "mortality_rate": "",
    "affected_regions": ["Region (share of cases - count)"],
    "age_groups": "", "gender_distribution": "", "economic_impact": "",
    "trends": "", "case_distribution": "top countries with case counts"
  }},
  "patient_impact_facts": {{
    "lifestyle_impact": [], "work_impact": [], "family_impact": [],
    "financial_impact": [], "emotional_impact": [], "long_term_outlook": [],
    "quality_of_life": [], "precautions": []
  }}
}}"""


def parse_global_statistics(content: str) -> Dict[str, Dict[str, Any]]:
    """
    The statistics sections found in an answer, keyed by their snake_case names.

    Raises:
        ResponseParseError: the answer holds no JSON object
    """
    data = extract_json_object(content)
    if data is None:
        raise ResponseParseError("No JSON in statistics answer")

    sections = {}
    for key, alias in _SECTIONS:
        value = data.get(key) or data.get(alias)
        if isinstance(value, dict) and value:
            sections[key] = value
    return sections


class GlobalStatisticsFinder(Enricher):
    """Ask the providers for worldwide statistics about a condition."""

    name = "globalStatistics"

    def __init__(
        self,
        fallback: Optional[FallbackOrchestrator] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(config)
        self.fallback = fallback or FallbackOrchestrator()

    async def fetch(self, disease_name: str) -> EnrichmentOutcome[Dict[str, Dict[str, Any]]]:
        if not disease_name or disease_name == "Unknown":
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No disease name")

        options = CallOptions(
            preferred_order=list(enrichment_settings.STATISTICS_PREFERRED_PROVIDERS),
            temperature=enrichment_settings.STATISTICS_TEMPERATURE,
            max_tokens=enrichment_settings.STATISTICS_MAX_TOKENS,
        )
        messages = [{"role": "user", "content": build_statistics_prompt(disease_name)}]

        try:
            generation = await self.fallback.generate(messages, STATISTICS_SYSTEM_PROMPT, options)
        except ConfigurationError as e:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.NOT_CONFIGURED, str(e))
        except ExhaustionError as e:
            self.logger.warning(f"Global statistics lookup failed: {e}")
            return EnrichmentOutcome.failure(EnrichmentErrorKind.UPSTREAM_FAILED, str(e))

        try:
            sections = parse_global_statistics(generation.content)
        except ResponseParseError as e:
            self.logger.warning(f"Unreadable statistics answer from {generation.provider}")
            return EnrichmentOutcome.failure(EnrichmentErrorKind.PARSE_FAILED, str(e))
        if not sections:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No statistics returned")

        self.logger.info(f"Global statistics for {disease_name} from {generation.provider}")
        return EnrichmentOutcome.success(sections)
