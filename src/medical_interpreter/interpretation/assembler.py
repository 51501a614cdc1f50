# ============================================================================
# src/medical_interpreter/interpretation/assembler.py
# ============================================================================
"""
Result Assembler

Turns parsed AI JSON, merged findings and the optional enrichment outcomes
into one InterpretationRecord. Every enrichment is optional: a failed one
contributes an empty default and its name is listed in enrichment_errors.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..core.context import ConsensusStrategy, Finding
from ..enrichers.base import EnrichmentOutcome
from .normalizers import (
    normalize_cause,
    normalize_disease_name,
    normalize_duration,
    normalize_emergency_remedies,
    normalize_global_statistics,
    normalize_medications,
    normalize_patient_impact,
    normalize_severity,
    normalize_string_array,
)
from .prompts import DISCLAIMER


@dataclass
class Attribution:
    """Which providers produced the interpretation."""
    providers: List[str]
    models: List[str]
    strategy: ConsensusStrategy
    validated_by: int = 1

    @property
    def consensus_validated(self) -> bool:
        return self.validated_by > 1


@dataclass
class AISummary:
    cause: str = ""
    symptoms: List[str] = field(default_factory=list)
    prevention: List[str] = field(default_factory=list)
    treatments: List[str] = field(default_factory=list)
    medications: List[str] = field(default_factory=list)
    medication_details: List[Dict[str, Any]] = field(default_factory=list)
    emergency_remedies: List[str] = field(default_factory=list)
    typical_duration: str = ""
    severity: str = ""
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cause": self.cause,
            "symptoms": self.symptoms,
            "prevention": self.prevention,
            "treatments": self.treatments,
            "medications": self.medications,
            "medicationDetails": self.medication_details,
            "emergencyRemedies": self.emergency_remedies,
            "typicalDuration": self.typical_duration,
            "severity": self.severity,
            "generatedAt": self.generated_at,
        }


@dataclass
class InterpretationRecord:
    """Canonical interpretation handed to the storage layer."""
    disease_name: str
    ai_summary: AISummary
    abnormal_findings: List[Finding]
    attribution: Attribution
    video_resources: List[Dict[str, Any]] = field(default_factory=list)
    specialist_providers: List[Dict[str, Any]] = field(default_factory=list)
    global_statistics: Optional[Dict[str, Any]] = None
    patient_impact_facts: Optional[Dict[str, Any]] = None
    file_name: str = "upload"
    disclaimer: str = DISCLAIMER
    enrichment_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "disease": {
                "name": self.disease_name,
                "aiSummary": self.ai_summary.to_dict(),
                "abnormalFindings": [f.to_dict() for f in self.abnormal_findings],
                "videoResources": self.video_resources,
                "specialistProviders": self.specialist_providers,
                "globalStatistics": self.global_statistics,
                "patientImpactFacts": self.patient_impact_facts,
            },
            "disclaimer": self.disclaimer,
            "fileName": self.file_name,
            "providerNamesUsed": self.attribution.providers,
            "modelNamesUsed": self.attribution.models,
            "consensusValidated": self.attribution.consensus_validated,
            "validatedByCount": self.attribution.validated_by,
            "strategy": self.attribution.strategy.value,
            "enrichmentErrors": self.enrichment_errors,
        }


class ResultAssembler:
    """Normalize AI output and fold in enrichment outcomes."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def assemble(
        self,
        result: Dict[str, Any],
        findings: Sequence[Finding],
        attribution: Attribution,
        file_name: Optional[str] = None,
        medication_details: Optional[EnrichmentOutcome] = None,
        videos: Optional[EnrichmentOutcome] = None,
        specialists: Optional[EnrichmentOutcome] = None,
        statistics: Optional[EnrichmentOutcome] = None,
        ai_videos: Optional[List[Dict[str, Any]]] = None,
        enrichment_errors: Optional[List[str]] = None,
    ) -> InterpretationRecord:
        errors = list(enrichment_errors or [])

        def _optional(name: str, outcome: Optional[EnrichmentOutcome], empty=list) -> Any:
            if outcome is None:
                return empty()
            if not outcome.ok:
                errors.append(name)
                self.logger.info(f"{name} enrichment degraded ({outcome.error.value}): {outcome.message}")
            return outcome.unwrap_or(empty())

        summary = AISummary(
            cause=normalize_cause(result.get("cause")),
            symptoms=normalize_string_array(result.get("symptoms")),
            prevention=normalize_string_array(result.get("prevention")),
            treatments=normalize_string_array(result.get("treatments")),
            medications=normalize_medications(result.get("medications")),
            medication_details=_optional("medications", medication_details),
            emergency_remedies=normalize_emergency_remedies(result),
            typical_duration=normalize_duration(result.get("typical_duration")),
            severity=normalize_severity(result.get("severity")),
        )

        video_resources = ai_videos if ai_videos else _optional("videos", videos)
        specialist_providers = _optional("specialists", specialists)
        sections = _optional("globalStatistics", statistics, dict)

        return InterpretationRecord(
            disease_name=normalize_disease_name(result.get("probable_disease")),
            ai_summary=summary,
            abnormal_findings=list(findings),
            attribution=attribution,
            video_resources=video_resources,
            specialist_providers=specialist_providers,
            global_statistics=normalize_global_statistics(sections.get("global_statistics")),
            patient_impact_facts=normalize_patient_impact(sections.get("patient_impact_facts")),
            file_name=file_name or "upload",
            enrichment_errors=errors,
        )
