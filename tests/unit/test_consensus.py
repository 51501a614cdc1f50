# ============================================================================
# FILE: tests/unit/test_consensus.py
# ============================================================================
"""
Unit tests for concurrent consensus and answer synthesis
"""

import json

import pytest

from medical_interpreter.core.context import ConsensusStrategy, SectionType
from medical_interpreter.orchestration.consensus import (
    ConsensusOrchestrator,
    synthesize,
    union_sequences,
    vote,
)
from medical_interpreter.orchestration.fallback import FallbackOrchestrator, GenerationResult
from medical_interpreter.providers.registry import ProviderRegistry
from medical_interpreter.utils.exceptions import (
    ErrorKind,
    InsufficientProviders,
    NoProvidersConfigured,
    TransportError,
)

MESSAGES = [{"role": "user", "content": "Interpret"}]

GEMINI_MODEL = "gemini-2.0-flash-exp"
CLAUDE_MODEL = "anthropic/claude-3.5-sonnet"
GROQ_MODEL = "llama-3.3-70b-versatile"
OPENAI_MODEL = "gpt-4o-mini"


def response(provider, priority, content):
    if not isinstance(content, str):
        content = json.dumps(content)
    return GenerationResult(content=content, provider=provider, model=f"{provider}-model", priority=priority)


def build(provider_config, transport, timeout=5.0):
    registry = ProviderRegistry(provider_config)
    fallback = FallbackOrchestrator(registry=registry, transport_factory=lambda kind: transport)
    return ConsensusOrchestrator(registry=registry, fallback=fallback, timeout=timeout)


class TestVote:
    """Test per-key voting"""

    def test_majority_wins(self):
        merged = vote([{"d": "A"}, {"d": "B"}, {"d": "B"}])
        assert merged["d"] == "B"

    def test_no_majority_takes_highest_priority(self):
        merged = vote([{"d": "A"}, {"d": "B"}, {"d": "C"}])
        assert merged["d"] == "A"

    def test_tie_goes_to_earliest(self):
        merged = vote([{"d": "A"}, {"d": "B"}, {"d": "B"}, {"d": "A"}])
        assert merged["d"] == "A"

    def test_single_supplier_key_is_kept(self):
        merged = vote([{"d": "A"}, {"d": "A", "severity": "mild"}])
        assert merged == {"d": "A", "severity": "mild"}

    def test_structural_equality(self):
        merged = vote([{"x": {"a": 1, "b": 2}}, {"x": {"b": 2, "a": 1}}, {"x": {"a": 3}}])
        assert merged["x"] == {"a": 1, "b": 2}

    def test_lists_are_unioned(self):
        merged = vote([{"symptoms": ["a", "b"]}, {"symptoms": ["b", "c"]}])
        assert merged["symptoms"] == ["a", "b", "c"]

    def test_union_dedupes_objects(self):
        assert union_sequences([[{"a": 1}], [{"a": 1}, {"a": 2}]]) == [{"a": 1}, {"a": 2}]


class TestSynthesize:
    """Test synthesis strategies"""

    def test_single_response_verbatim(self):
        result = synthesize([response("groq", 3, "not even json")])

        assert result.strategy is ConsensusStrategy.SINGLE
        assert result.content == "not even json"
        assert result.parsed_value is None
        assert not result.is_validated

    def test_json_majority(self):
        result = synthesize([
            response("gemini", 1, {"d": "A", "symptoms": ["x"]}),
            response("groq", 3, {"d": "B", "symptoms": ["y"]}),
            response("openrouter", 2, {"d": "B", "symptoms": ["x", "z"]}),
        ])

        assert result.strategy is ConsensusStrategy.MULTI_PROVIDER
        assert result.providers == ["gemini", "openrouter", "groq"]
        assert result.parsed_value == {"d": "B", "symptoms": ["x", "z", "y"]}
        assert json.loads(result.content) == result.parsed_value
        assert result.validated_by == 3

    def test_one_parsable_response(self):
        result = synthesize([response("gemini", 1, "prose only"), response("groq", 3, {"d": "A"})])

        assert result.strategy is ConsensusStrategy.SINGLE
        assert result.parsed_value == {"d": "A"}
        assert result.validated_by == 2

    def test_nothing_parses(self):
        result = synthesize([response("groq", 3, "second"), response("gemini", 1, "first")])

        assert result.strategy is ConsensusStrategy.FALLBACK
        assert result.content == "first"

    def test_text_section(self):
        result = synthesize(
            [response("gemini", 1, "Summary A"), response("groq", 3, "Summary B")],
            SectionType.TEXT,
        )

        assert result.strategy is ConsensusStrategy.VALIDATED
        assert result.content == "Summary A"
        assert result.note == "Validated by 2 providers: gemini, groq"

    def test_empty(self):
        with pytest.raises(InsufficientProviders):
            synthesize([])


class TestConsensusOrchestrator:
    """Test the concurrent fan-out"""

    @pytest.mark.asyncio
    async def test_timeout_does_not_block_others(self, provider_config, make_transport):
        transport = make_transport({
            GEMINI_MODEL: json.dumps({"probable_disease": "Anemia", "symptoms": ["fatigue"]}),
            CLAUDE_MODEL: json.dumps({"probable_disease": "Iron deficiency anemia", "symptoms": ["fatigue", "pallor"]}),
            GROQ_MODEL: json.dumps({"probable_disease": "Iron deficiency anemia", "symptoms": ["pallor", "dizziness"]}),
            OPENAI_MODEL: 2.0,
        })

        result = await build(provider_config, transport, timeout=0.1).consensus(MESSAGES)

        assert result.strategy is ConsensusStrategy.MULTI_PROVIDER
        assert result.parsed_value["probable_disease"] == "Iron deficiency anemia"
        assert result.parsed_value["symptoms"] == ["fatigue", "pallor", "dizziness"]
        assert result.models == [GEMINI_MODEL, CLAUDE_MODEL, GROQ_MODEL]
        assert result.validated_by == 3

    @pytest.mark.asyncio
    async def test_all_members_contacted(self, provider_config, make_transport):
        transport = make_transport({GROQ_MODEL: '{"a": 1}'})

        result = await build(provider_config, transport).consensus(MESSAGES)

        assert sorted(transport.calls) == sorted([GEMINI_MODEL, CLAUDE_MODEL, GROQ_MODEL, OPENAI_MODEL])
        assert result.strategy is ConsensusStrategy.SINGLE
        assert result.providers == ["groq"]

    @pytest.mark.asyncio
    async def test_all_fail(self, provider_config, make_transport):
        transport = make_transport({GROQ_MODEL: TransportError("boom", ErrorKind.TRANSIENT)})

        with pytest.raises(InsufficientProviders) as exc_info:
            await build(provider_config, transport).consensus(MESSAGES)
        assert exc_info.value.received == 0

    @pytest.mark.asyncio
    async def test_min_providers(self, provider_config, make_transport):
        transport = make_transport({GROQ_MODEL: '{"a": 1}'})

        with pytest.raises(InsufficientProviders) as exc_info:
            await build(provider_config, transport).consensus(MESSAGES, min_providers=2)
        assert exc_info.value.required == 2

    @pytest.mark.asyncio
    async def test_empty_roster(self, make_transport):
        with pytest.raises(NoProvidersConfigured):
            await build({}, make_transport()).consensus(MESSAGES)
