# ============================================================================
# src/medical_interpreter/interpretation/service.py
# ============================================================================
"""
Report Interpretation Service

Entry point for one uploaded report:

    1. JSON consensus over the provider roster (fallback chain if exhausted)
    2. Normalize AI findings, extract findings from the text, merge
    3. Fill missing reference ranges (optional)
    4. Medications, videos, specialists and global statistics concurrently
       (each optional; an enrichment that raises degrades like any other)
    5. Assemble the InterpretationRecord

Usage:
    interpreter = ReportInterpreter()
    record = await interpreter.interpret(parsed_text, "cbc.pdf")
    payload = record.to_dict()
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..config import orchestration_settings
from ..core.config import get_config
from ..core.context import ConsensusStrategy, Finding, SectionType
from ..enrichers.base import EnrichmentErrorKind, EnrichmentOutcome
from ..enrichers.cache import MemoCache
from ..enrichers.medications import MedicationEnricher
from ..enrichers.specialists import SpecialistFinder
from ..enrichers.statistics import GlobalStatisticsFinder
from ..enrichers.videos import VideoSearcher
from ..lab.extractor import LabValueExtractor
from ..lab.merge import merge_findings
from ..lab.reference_ranges import ReferenceRangeEnricher
from ..orchestration.consensus import ConsensusOrchestrator
from ..orchestration.fallback import FallbackOrchestrator
from ..providers.base import CallOptions, extract_json_object
from ..providers.registry import ProviderRegistry
from ..utils.exceptions import ConfigurationError, ExhaustionError
from ..utils.logging import LogContext, log_performance
from .assembler import Attribution, InterpretationRecord, ResultAssembler
from .normalizers import (
    normalize_ai_findings,
    normalize_disease_name,
    normalize_medications,
    normalize_video_resources,
)
from .prompts import FALLBACK_SYSTEM_PROMPT, INTERPRET_SYSTEM_PROMPT, build_interpret_prompt

logger = logging.getLogger(__name__)

MIN_DOCUMENT_LENGTH = 5

ENRICHMENT_NAMES = ("medications", "videos", "specialists", "globalStatistics")


class ReportInterpreter:
    """
    Orchestrates one interpretation request.

    All collaborators can be injected; defaults are built from the
    process configuration.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        registry: Optional[ProviderRegistry] = None,
        fallback: Optional[FallbackOrchestrator] = None,
        consensus: Optional[ConsensusOrchestrator] = None,
        extractor: Optional[LabValueExtractor] = None,
        reference_ranges: Optional[ReferenceRangeEnricher] = None,
        medications: Optional[MedicationEnricher] = None,
        videos: Optional[VideoSearcher] = None,
        specialists: Optional[SpecialistFinder] = None,
        statistics: Optional[GlobalStatisticsFinder] = None,
        cache: Optional[MemoCache] = None,
    ):
        self.config = config if config is not None else get_config()
        self.registry = registry or ProviderRegistry(self.config)
        self.fallback = fallback or FallbackOrchestrator(registry=self.registry)
        self.consensus = consensus or ConsensusOrchestrator(
            registry=self.registry, fallback=self.fallback
        )
        self.extractor = extractor or LabValueExtractor()
        self.reference_ranges = reference_ranges or ReferenceRangeEnricher(
            consensus=self.consensus, fallback=self.fallback
        )
        self.cache = cache or MemoCache()
        self.medications = medications or MedicationEnricher(self.cache, self.config)
        self.videos = videos or VideoSearcher(self.config)
        self.specialists = specialists or SpecialistFinder(self.fallback, self.config)
        self.statistics = statistics or GlobalStatisticsFinder(self.fallback, self.config)
        self.assembler = ResultAssembler()
        self.logger = logging.getLogger(self.__class__.__name__)

    async def interpret(self, document_text: str, file_name: Optional[str] = None) -> InterpretationRecord:
        """
        Interpret one report.

        Raises:
            ValueError: document_text shorter than 5 characters
            ConfigurationError: no providers configured
            ExhaustionError: consensus and the fallback chain both failed
        """
        if not document_text or len(document_text.strip()) < MIN_DOCUMENT_LENGTH:
            raise ValueError("parsed_text required (at least 5 characters)")

        with LogContext(self.logger, request_id=uuid.uuid4().hex[:12], file_name=file_name or "upload"):
            return await self._interpret(document_text, file_name)

    @log_performance(logger, "report interpretation")
    async def _interpret(self, document_text: str, file_name: Optional[str]) -> InterpretationRecord:
        result, attribution = await self._generate(document_text)

        # Findings: AI first, text extraction fills gaps
        ai_findings = normalize_ai_findings(result.get("abnormal_values"))
        extracted = self.extractor.extract(document_text)
        findings = merge_findings(ai_findings, extracted)
        self.logger.info(
            f"Findings: {len(ai_findings)} from AI, {len(extracted)} extracted, {len(findings)} merged"
        )

        enrichment_errors: List[str] = []
        findings = await self._enrich_ranges(findings, enrichment_errors)

        disease_name = normalize_disease_name(result.get("probable_disease"))
        medication_names = normalize_medications(result.get("medications"))
        ai_videos = normalize_video_resources(result.get("video_resources"))

        outcomes = await asyncio.gather(
            self._enrich_medications(medication_names),
            self._search_videos(disease_name, ai_videos),
            self.specialists.find(disease_name),
            self.statistics.fetch(disease_name),
            return_exceptions=True,
        )
        medication_outcome, video_outcome, specialist_outcome, statistics_outcome = [
            self._contain(name, outcome)
            for name, outcome in zip(ENRICHMENT_NAMES, outcomes)
        ]

        record = self.assembler.assemble(
            result,
            findings,
            attribution,
            file_name=file_name,
            medication_details=medication_outcome,
            videos=video_outcome,
            specialists=specialist_outcome,
            statistics=statistics_outcome,
            ai_videos=ai_videos,
            enrichment_errors=enrichment_errors,
        )
        self.logger.info(
            f"Interpreted '{record.disease_name}' via {', '.join(attribution.providers)} "
            f"(strategy={attribution.strategy.value}, validated_by={attribution.validated_by})"
        )
        return record

    async def _generate(self, document_text: str) -> Tuple[Dict[str, Any], Attribution]:
        """Consensus first; the fallback chain when consensus is exhausted."""
        messages = [{"role": "user", "content": build_interpret_prompt(document_text)}]
        options = CallOptions(
            temperature=orchestration_settings.INTERPRET_TEMPERATURE,
            max_tokens=orchestration_settings.INTERPRET_MAX_TOKENS,
        )

        try:
            consensus = await self.consensus.consensus(
                messages,
                INTERPRET_SYSTEM_PROMPT,
                options,
                section_type=SectionType.JSON,
                min_providers=orchestration_settings.CONSENSUS_MIN_PROVIDERS,
            )
        except (ExhaustionError, ConfigurationError) as e:
            self.logger.warning(f"Consensus failed, falling back to single provider: {e}")
        else:
            result = consensus.parsed_value or extract_json_object(consensus.content) or {}
            return result, Attribution(
                providers=consensus.providers,
                models=consensus.models,
                strategy=consensus.strategy,
                validated_by=consensus.validated_by,
            )

        options.preferred_order = list(orchestration_settings.FALLBACK_PREFERRED_PROVIDERS)
        generation = await self.fallback.generate(messages, FALLBACK_SYSTEM_PROMPT, options)
        result = extract_json_object(generation.content) or {}
        return result, Attribution(
            providers=[generation.provider],
            models=[generation.model],
            strategy=ConsensusStrategy.SINGLE,
            validated_by=1,
        )

    async def _enrich_ranges(self, findings: List[Finding], errors: List[str]) -> List[Finding]:
        if all(f.has_reference_range for f in findings):
            return findings
        outcome = await self.reference_ranges.enrich(findings)
        if not outcome.ok:
            errors.append("referenceRanges")
            self.logger.info(f"Reference ranges not enriched ({outcome.error.value}): {outcome.message}")
        return outcome.unwrap_or(findings)

    def _contain(self, name: str, outcome: Any) -> Optional[EnrichmentOutcome]:
        """Turn an exception escaping an enrichment into a failed outcome."""
        if isinstance(outcome, Exception):
            self.logger.error(f"{name} enrichment raised {type(outcome).__name__}: {outcome}")
            return EnrichmentOutcome.failure(
                EnrichmentErrorKind.UPSTREAM_FAILED, f"{type(outcome).__name__}: {outcome}"
            )
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def _enrich_medications(self, names: List[str]) -> Optional[EnrichmentOutcome]:
        if not names:
            return None
        return await self.medications.enrich(names)

    async def _search_videos(self, disease_name: str, ai_videos: List[Dict[str, Any]]) -> EnrichmentOutcome:
        if ai_videos:
            return EnrichmentOutcome.success(ai_videos)
        if disease_name == "Unknown":
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No disease name to search")
        return await self.videos.search(disease_name, "en")

    async def close(self) -> None:
        """Close enrichment HTTP sessions."""
        for enricher in (self.medications, self.videos, self.specialists, self.statistics):
            await enricher.close()
