# ============================================================================
# src/medical_interpreter/enrichers/medications.py
# ============================================================================
"""
Medication enrichment.

For each distinct medication name (up to MEDICATION_LOOKUP_LIMIT):
- RxNorm: rxcui and brand names
- OpenFDA drug label: warnings, adverse reactions, indications
- DrugBank: description and mechanism (only when DRUGBANK_API_KEY is set)

Drugs, and the three lookups for each drug, run concurrently. Every result,
including "nothing found", is memoised in the injected MemoCache. Failed
lookups, and RxNorm results missing their brand names, are not cached so a
later request can retry them.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, quote_plus

from ..config import enrichment_settings
from .base import Enricher, EnrichmentErrorKind, EnrichmentOutcome, UpstreamError
from .cache import MemoCache

RXNAV_BASE = "https://rxnav.nlm.nih.gov/REST"
OPEN_FDA_LABEL = "https://api.fda.gov/drug/label.json"
DRUGBANK_BASE = "https://api.drugbank.com/v1"

DEFAULT_EFFECT = "Consult your healthcare provider for detailed pharmacology and effects."

# Marks a lookup that only partly succeeded; such results are not memoised
PARTIAL = "_partial"

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def pharmacy_links(name: str) -> List[Dict[str, str]]:
    return [
        {"name": "Flipkart Health+", "url": f"https://www.flipkart.com/search?q={quote_plus(name + ' medicine')}"},
        {"name": "Apollo Pharmacy", "url": f"https://www.apollopharmacy.in/search-medicines/{quote(name)}"},
        {"name": "Medisure", "url": f"https://www.medisure.in/search?query={quote_plus(name)}"},
    ]


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _nested(data: Any, key: str) -> Dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _key_sentences(text: Any, limit: int) -> List[str]:
    if not isinstance(text, str):
        return []
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text)]
    return [s for s in sentences if 25 < len(s) < 200][:limit]


def summarize_effect(fda: Optional[Dict[str, Any]], drugbank: Optional[Dict[str, Any]]) -> str:
    """Up to six key points, " | " separated, mechanism first."""
    points: List[str] = []
    if drugbank and drugbank.get("mechanism"):
        points.extend(_key_sentences(drugbank["mechanism"], 3))

    indications = (fda or {}).get("indications") or []
    if indications and isinstance(indications[0], str):
        first = indications[0]
        points.extend(_key_sentences(first, 2) if len(first) > 100 else [first])

    if drugbank and drugbank.get("description") and len(points) < 4:
        points.extend(_key_sentences(drugbank["description"], 2))

    seen = set()
    unique: List[str] = []
    for point in points:
        cleaned = " ".join(point.split())
        if cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        unique.append(cleaned if cleaned[-1:] in ".!?" else cleaned + ".")
    return " | ".join(unique[:6]) if unique else DEFAULT_EFFECT


class MedicationEnricher(Enricher):
    """Drug lookups against public drug databases."""

    name = "medications"

    def __init__(
        self,
        cache: MemoCache,
        config: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(config, timeout)
        self.cache = cache
        self.limit = limit if limit is not None else enrichment_settings.MEDICATION_LOOKUP_LIMIT
        self.drugbank_api_key = self.config.get("drugbank_api_key", "")

    async def enrich(self, names: Sequence[str]) -> EnrichmentOutcome[List[Dict[str, Any]]]:
        unique: List[str] = []
        for name in names:
            cleaned = str(name).strip() if name else ""
            if cleaned and cleaned not in unique:
                unique.append(cleaned)

        selected = unique[: self.limit]
        if not selected:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No medications to enrich")

        records = await asyncio.gather(*(self._lookup(name) for name in selected))

        self.logger.info(f"Enriched {len(records)} medication(s)")
        return EnrichmentOutcome.success(list(records))

    async def _lookup(self, name: str) -> Dict[str, Any]:
        rxnorm, fda, drugbank = await asyncio.gather(
            self._rxnorm(name), self._openfda(name), self._drugbank(name)
        )
        return self._record(name, rxnorm, fda, drugbank)

    def _record(
        self,
        name: str,
        rxnorm: Optional[Dict[str, Any]],
        fda: Optional[Dict[str, Any]],
        drugbank: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        sources = []
        if rxnorm and rxnorm.get("rxCUI"):
            sources.append("RxNorm")
        if fda:
            sources.append("OpenFDA")
        if drugbank:
            sources.append("DrugBank")
        return {
            "name": name,
            "rxCUI": (rxnorm or {}).get("rxCUI"),
            "brandNames": (rxnorm or {}).get("brandNames", []),
            "fdaWarnings": (fda or {}).get("warnings", []),
            "fdaAdverseReactions": (fda or {}).get("adverseReactions", []),
            "fdaIndications": (fda or {}).get("indications", []),
            "drugBank": drugbank,
            "effect": summarize_effect(fda, drugbank),
            "pharmacyLinks": pharmacy_links(name),
            "sources": sources,
        }

    async def _memoised(self, prefix: str, name: str, fetch) -> Optional[Dict[str, Any]]:
        key = MemoCache.make_key(prefix, name)
        found, value = self.cache.lookup(key)
        if found:
            return value
        try:
            value = await fetch(name)
        except UpstreamError as e:
            self.logger.warning(f"{prefix} lookup failed for {name}: {e}")
            return None
        if isinstance(value, dict) and value.pop(PARTIAL, False):
            return value
        self.cache.set_once(key, value)
        return value

    async def _rxnorm(self, name: str) -> Optional[Dict[str, Any]]:
        return await self._memoised("rxnorm", name, self._fetch_rxnorm)

    async def _openfda(self, name: str) -> Optional[Dict[str, Any]]:
        return await self._memoised("openfda", name, self._fetch_openfda)

    async def _drugbank(self, name: str) -> Optional[Dict[str, Any]]:
        if not self.drugbank_api_key:
            return None
        return await self._memoised("drugbank", name, self._fetch_drugbank)

    async def _fetch_rxnorm(self, name: str) -> Dict[str, Any]:
        data = await self._get_json(f"{RXNAV_BASE}/rxcui.json", params={"name": name})
        ids = _nested(data, "idGroup").get("rxnormId")
        rxcui = ids[0] if isinstance(ids, list) and ids and isinstance(ids[0], str) else None
        if not rxcui:
            return {"rxCUI": None, "brandNames": []}

        try:
            related = await self._get_json(
                f"{RXNAV_BASE}/rxcui/{rxcui}/related.json", params={"tty": "BN"}
            )
        except UpstreamError as e:
            self.logger.warning(f"RxNorm brand names unavailable for {name}: {e}")
            return {"rxCUI": rxcui, "brandNames": [], PARTIAL: True}

        brand_names: List[str] = []
        for group in _as_list(_nested(related, "relatedGroup").get("conceptGroup")):
            concepts = group.get("conceptProperties") if isinstance(group, dict) else None
            for concept in _as_list(concepts):
                if isinstance(concept, dict) and isinstance(concept.get("name"), str):
                    brand_names.append(concept["name"])

        return {"rxCUI": rxcui, "brandNames": brand_names}

    async def _fetch_openfda(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._get_json(
                OPEN_FDA_LABEL,
                params={"search": f'openfda.generic_name:"{name}"', "limit": "1"},
            )
        except UpstreamError as e:
            # OpenFDA answers 404 when the search has no matches
            if e.status == 404:
                return None
            raise

        results = (data or {}).get("results") or []
        if not results:
            return None
        label = results[0]
        return {
            "labelId": label.get("id", ""),
            "warnings": _as_list(label.get("warnings") or label.get("warnings_and_cautions")),
            "adverseReactions": _as_list(label.get("adverse_reactions")),
            "indications": _as_list(label.get("indications_and_usage")),
            "source": "OpenFDA Drug Label",
        }

    async def _fetch_drugbank(self, name: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            f"{DRUGBANK_BASE}/drug_names",
            params={"q": name},
            headers={"Authorization": self.drugbank_api_key},
        )
        result = data[0] if isinstance(data, list) and data else data
        if not isinstance(result, dict) or not result:
            return None
        return {
            "name": result.get("name") or name,
            "description": result.get("description", ""),
            "mechanism": result.get("mechanism_of_action", ""),
            "dosageForms": result.get("dosages", []),
            "interactions": result.get("drug_interactions", []),
        }
