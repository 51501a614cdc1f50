# ============================================================================
# src/medical_interpreter/enrichers/specialists.py
# ============================================================================
"""
Specialist lookup through the provider fallback chain.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..orchestration.fallback import FallbackOrchestrator
from ..providers.base import CallOptions, extract_json_object
from ..utils.exceptions import ConfigurationError, ExhaustionError, ResponseParseError
from .base import Enricher, EnrichmentErrorKind, EnrichmentOutcome

MAPS_SEARCH_URL = "https://www.google.com/maps/search/{query}"


def build_specialist_prompt(disease_name: str, region: str) -> str:
    return f"""You are a healthcare navigator with access to verified medical directories. Recommend up to four medical specialists in {region} who are qualified to treat "{disease_name}".

Match the specialist type to the disease (e.g. Nephrologist for kidney disease, Cardiologist for heart conditions).
Prefer accredited hospitals, teaching hospitals and board-certified practitioners, spread across {region} where possible.

For each specialist provide:
- name: full name
- speciality: exact medical specialty
- hospital: hospital or clinic name
- city: city within {region}
- contact: phone number or booking URL, only if publicly available
- google_maps_query: searchable phrase for Google Maps

Only include real, verifiable specialists. If you cannot find any, return an empty array.

Return JSON: {{"specialists": [{{"name": "", "speciality": "", "hospital": "", "city": "", "contact": "", "google_maps_query": ""}}]}}"""


def _text(value: Any) -> str:
    # Model output: any JSON type can show up where a string was asked for
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def parse_specialists(content: str, disease_name: str) -> List[Dict[str, Any]]:
    """
    Specialist records with a map link.

    Raises:
        ResponseParseError: the answer holds no JSON object
    """
    data = extract_json_object(content)
    if data is None:
        raise ResponseParseError("No JSON in specialist answer")

    items = data.get("specialists")
    if not isinstance(items, list):
        return []

    refreshed_at = datetime.now(timezone.utc).isoformat()
    specialists = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name"))
        speciality = _text(item.get("speciality"))
        if not name or not speciality:
            continue
        hospital = _text(item.get("hospital"))
        city = _text(item.get("city"))
        query = _text(item.get("google_maps_query")) or f"{speciality} {hospital} {city} {disease_name}"
        specialists.append({
            "name": name,
            "speciality": speciality,
            "hospital": hospital,
            "city": city,
            "contact": _text(item.get("contact")),
            "mapUrl": MAPS_SEARCH_URL.format(query=quote(" ".join(query.split()))),
            "refreshedAt": refreshed_at,
        })
    return specialists


class SpecialistFinder(Enricher):
    """Ask the providers for specialists treating a condition."""

    name = "specialists"

    def __init__(
        self,
        fallback: Optional[FallbackOrchestrator] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(config)
        self.fallback = fallback or FallbackOrchestrator()
        self.default_region = self.config.get("specialist_region") or "India"

    async def find(
        self, disease_name: str, region: Optional[str] = None
    ) -> EnrichmentOutcome[List[Dict[str, Any]]]:
        if not disease_name or disease_name == "Unknown":
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No disease name")

        region = region or self.default_region
        options = CallOptions(preferred_order=["gemini", "groq"], temperature=0.2, max_tokens=1200)
        messages = [{"role": "user", "content": build_specialist_prompt(disease_name, region)}]

        try:
            generation = await self.fallback.generate(messages, "Return valid JSON only.", options)
        except ConfigurationError as e:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.NOT_CONFIGURED, str(e))
        except ExhaustionError as e:
            self.logger.warning(f"Specialist lookup failed: {e}")
            return EnrichmentOutcome.failure(EnrichmentErrorKind.UPSTREAM_FAILED, str(e))

        try:
            specialists = parse_specialists(generation.content, disease_name)
        except ResponseParseError as e:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.PARSE_FAILED, str(e))
        if not specialists:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No specialists returned")

        self.logger.info(f"Found {len(specialists)} specialist(s) for {disease_name}")
        return EnrichmentOutcome.success(specialists)
