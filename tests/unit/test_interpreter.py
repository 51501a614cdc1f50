# ============================================================================
# FILE: tests/unit/test_interpreter.py
# ============================================================================
"""
End-to-end tests for report interpretation with mocked providers
"""

import json

import pytest

from medical_interpreter.core.context import ConsensusStrategy
from medical_interpreter.enrichers.base import EnrichmentErrorKind, EnrichmentOutcome
from medical_interpreter.enrichers.specialists import SpecialistFinder
from medical_interpreter.interpretation.assembler import Attribution, ResultAssembler
from medical_interpreter.interpretation.service import ReportInterpreter
from medical_interpreter.orchestration.consensus import ConsensusOrchestrator
from medical_interpreter.orchestration.fallback import FallbackOrchestrator
from medical_interpreter.providers.registry import ProviderRegistry
from medical_interpreter.utils.exceptions import (
    ConfigurationError,
    ErrorKind,
    InsufficientProviders,
    TransportError,
)

AI_RESULT = {
    "probable_disease": "Anemia",
    "cause": "Low iron stores",
    "symptoms": ["fatigue", "pallor"],
    "prevention": ["Iron-rich diet"],
    "treatments": ["Iron supplementation"],
    "medications": ["Ferrous sulfate"],
    "emergency_home_remedy": "Rest and hydrate",
    "typical_duration": "2-3 months",
    "severity": "moderate",
    "abnormal_values": [
        {"test": "Hemoglobin", "value": "9.2", "unit": "g/dL", "flag": "Low", "interpretation": "Below normal"},
    ],
}


class StubMedications:
    def __init__(self):
        self.names = None

    async def enrich(self, names):
        self.names = list(names)
        return EnrichmentOutcome.success([{"name": name} for name in names])


class StubSpecialists:
    async def find(self, disease_name, region=None):
        return EnrichmentOutcome.success([{"name": "Dr. A Rao", "speciality": "Hematologist"}])


class StubStatistics:
    async def fetch(self, disease_name):
        return EnrichmentOutcome.success({"global_statistics": {"global_prevalence": "1.9 billion people"}})


class ExplodingSpecialists:
    async def find(self, disease_name, region=None):
        raise AttributeError("'list' object has no attribute 'split'")


class FailingConsensus:
    async def consensus(self, *args, **kwargs):
        raise InsufficientProviders(0, 1)


def build(provider_config, transport, consensus=None, specialists=None):
    registry = ProviderRegistry(provider_config)
    fallback = FallbackOrchestrator(registry=registry, transport_factory=lambda kind: transport)
    consensus = consensus or ConsensusOrchestrator(registry=registry, fallback=fallback, timeout=0.1)
    return ReportInterpreter(
        config=provider_config,
        registry=registry,
        fallback=fallback,
        consensus=consensus,
        medications=StubMedications(),
        specialists=specialists or StubSpecialists(),
        statistics=StubStatistics(),
    )


@pytest.mark.asyncio
async def test_consensus_interpretation(provider_config, make_transport, sample_lab_text):
    """Provider 1 times out, providers 2 and 3 agree"""
    transport = make_transport({
        "gemini-2.0-flash-exp": 1.0,
        "anthropic/claude-3.5-sonnet": json.dumps(AI_RESULT),
        "llama-3.3-70b-versatile": "```json\n" + json.dumps(AI_RESULT) + "\n```",
        "gpt-4o-mini": TransportError("quota", ErrorKind.RATE_LIMIT, status=429),
    })
    interpreter = build(provider_config, transport)

    record = await interpreter.interpret(sample_lab_text, "cbc.pdf")
    payload = record.to_dict()

    assert payload["disease"]["name"] == "Anemia"
    assert payload["consensusValidated"] is True
    assert payload["validatedByCount"] == 2
    assert payload["strategy"] == "multi-provider"
    assert payload["providerNamesUsed"] == ["openrouter", "groq"]
    assert payload["modelNamesUsed"] == ["anthropic/claude-3.5-sonnet", "llama-3.3-70b-versatile"]
    assert payload["fileName"] == "cbc.pdf"
    assert "not a substitute" in payload["disclaimer"].lower()

    summary = payload["disease"]["aiSummary"]
    assert summary["symptoms"] == ["fatigue", "pallor"]
    assert summary["emergencyRemedies"] == ["Rest and hydrate"]
    assert summary["medicationDetails"] == [{"name": "Ferrous sulfate"}]
    assert interpreter.medications.names == ["Ferrous sulfate"]

    findings = {f["test"]: f for f in payload["disease"]["abnormalFindings"]}
    assert set(findings) == {"Hemoglobin", "Ferritin"}
    assert findings["Hemoglobin"]["interpretation"] == "Below normal"
    assert findings["Hemoglobin"]["referenceRange"] == "12.0 - 15.5"
    assert findings["Ferritin"]["flag"] == "Low"

    assert payload["disease"]["specialistProviders"][0]["speciality"] == "Hematologist"
    assert payload["disease"]["globalStatistics"]["globalPrevalence"] == "1.9 billion people"
    assert payload["disease"]["patientImpactFacts"] is None
    assert payload["disease"]["videoResources"] == []
    assert payload["enrichmentErrors"] == ["videos"]


@pytest.mark.asyncio
async def test_fallback_after_consensus_failure(provider_config, make_transport, sample_lab_text):
    transport = make_transport({"llama-3.3-70b-versatile": json.dumps(AI_RESULT)})
    interpreter = build(provider_config, transport, consensus=FailingConsensus())

    record = await interpreter.interpret(sample_lab_text)

    assert record.disease_name == "Anemia"
    assert record.attribution.strategy is ConsensusStrategy.SINGLE
    assert record.attribution.validated_by == 1
    assert record.attribution.providers == ["groq"]
    assert not record.to_dict()["consensusValidated"]
    assert transport.calls == ["llama-3.3-70b-versatile"]


@pytest.mark.asyncio
async def test_malformed_specialist_answer_degrades(provider_config, make_transport, sample_lab_text):
    """A specialist answer with a list where a string belongs still yields a record"""
    transport = make_transport({
        "llama-3.3-70b-versatile": json.dumps(AI_RESULT),
        "gemini-2.0-flash-exp": json.dumps({"specialists": [
            {"name": "Dr X", "speciality": "Hematology", "google_maps_query": ["x"]},
        ]}),
    })
    interpreter = build(provider_config, transport, consensus=FailingConsensus())
    interpreter.specialists = SpecialistFinder(interpreter.fallback, provider_config)

    payload = (await interpreter.interpret(sample_lab_text)).to_dict()

    assert payload["disease"]["name"] == "Anemia"
    specialist = payload["disease"]["specialistProviders"][0]
    assert specialist["name"] == "Dr X"
    assert specialist["mapUrl"] == "https://www.google.com/maps/search/Hematology%20Anemia"


@pytest.mark.asyncio
async def test_raising_enrichment_is_contained(provider_config, make_transport, sample_lab_text):
    transport = make_transport({"llama-3.3-70b-versatile": json.dumps(AI_RESULT)})
    interpreter = build(
        provider_config, transport, consensus=FailingConsensus(), specialists=ExplodingSpecialists()
    )

    payload = (await interpreter.interpret(sample_lab_text)).to_dict()

    assert payload["disease"]["name"] == "Anemia"
    assert payload["disease"]["specialistProviders"] == []
    assert "specialists" in payload["enrichmentErrors"]


@pytest.mark.asyncio
async def test_unparseable_answer_degrades(provider_config, make_transport):
    transport = make_transport({"llama-3.3-70b-versatile": "I am unable to read this report."})
    interpreter = build(provider_config, transport, consensus=FailingConsensus())

    record = await interpreter.interpret("Ferritin 8 ng/mL 15-150 Low")

    assert record.disease_name == "Unknown"
    assert [f.test for f in record.abnormal_findings] == ["Ferritin"]
    assert record.ai_summary.medications == []


@pytest.mark.asyncio
async def test_short_text_rejected(provider_config, make_transport):
    with pytest.raises(ValueError):
        await build(provider_config, make_transport()).interpret("  abc ")


@pytest.mark.asyncio
async def test_no_providers(make_transport, sample_lab_text):
    with pytest.raises(ConfigurationError):
        await build({}, make_transport()).interpret(sample_lab_text)


def test_assembler_collects_enrichment_errors():
    """Test that failed enrichments degrade to empty defaults"""
    record = ResultAssembler().assemble(
        {"probable_disease": {"primary_diagnosis": "Hypothyroidism"}},
        [],
        Attribution(providers=["groq"], models=["llama"], strategy=ConsensusStrategy.SINGLE),
        medication_details=EnrichmentOutcome.failure(EnrichmentErrorKind.UPSTREAM_FAILED, "down"),
        specialists=EnrichmentOutcome.failure(EnrichmentErrorKind.PARSE_FAILED, "bad"),
        enrichment_errors=["referenceRanges"],
    )
    payload = record.to_dict()

    assert payload["disease"]["name"] == "Hypothyroidism"
    assert payload["disease"]["aiSummary"]["medicationDetails"] == []
    assert payload["enrichmentErrors"] == ["referenceRanges", "medications", "specialists"]
    assert payload["fileName"] == "upload"
    assert payload["validatedByCount"] == 1
