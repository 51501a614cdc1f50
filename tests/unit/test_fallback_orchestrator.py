# ============================================================================
# FILE: tests/unit/test_fallback_orchestrator.py
# ============================================================================
"""
Unit tests for the sequential provider fallback chain
"""

import pytest

from medical_interpreter.orchestration.fallback import FallbackOrchestrator
from medical_interpreter.providers.base import CallOptions
from medical_interpreter.providers.registry import ProviderRegistry
from medical_interpreter.utils.exceptions import (
    AllProvidersFailed,
    ErrorKind,
    ExhaustionError,
    NoProvidersConfigured,
    TransportError,
)

MESSAGES = [{"role": "user", "content": "hello"}]

GEMINI_MODEL = "gemini-2.0-flash-exp"
GROQ_MODEL = "llama-3.3-70b-versatile"
OPENAI_MODEL = "gpt-4o-mini"


def build(provider_config, transport):
    return FallbackOrchestrator(
        registry=ProviderRegistry(provider_config),
        transport_factory=lambda kind: transport,
    )


@pytest.mark.asyncio
async def test_first_provider_wins(provider_config, make_transport):
    transport = make_transport({GEMINI_MODEL: "from gemini", GROQ_MODEL: "from groq"})
    result = await build(provider_config, transport).generate(MESSAGES)

    assert result.content == "from gemini"
    assert result.provider == "gemini"
    assert result.model == GEMINI_MODEL
    assert transport.calls == [GEMINI_MODEL]


@pytest.mark.asyncio
async def test_rate_limited_provider_is_skipped(provider_config, make_transport):
    transport = make_transport({
        GEMINI_MODEL: TransportError("429", ErrorKind.RATE_LIMIT, status=429),
        GROQ_MODEL: "from groq",
    })
    result = await build(provider_config, transport).generate(MESSAGES)

    assert result.provider == "groq"
    assert result.priority == 2
    assert [a.success for a in result.attempts] == [False, True]
    assert result.attempts[0].error.kind is ErrorKind.RATE_LIMIT


@pytest.mark.asyncio
async def test_preferred_order(provider_config, make_transport):
    transport = make_transport({GEMINI_MODEL: "from gemini", OPENAI_MODEL: "from openai"})
    options = CallOptions(preferred_order=["openai"])

    result = await build(provider_config, transport).generate(MESSAGES, options=options)

    assert result.provider == "openai"
    assert transport.calls == [OPENAI_MODEL]


@pytest.mark.asyncio
async def test_each_provider_tried_once(provider_config, make_transport):
    transport = make_transport({
        GEMINI_MODEL: TransportError("auth", ErrorKind.AUTH, status=401),
        GROQ_MODEL: TransportError("down", ErrorKind.TRANSIENT, status=503),
        OPENAI_MODEL: TransportError("last", ErrorKind.TRANSIENT, status=500),
    })

    with pytest.raises(AllProvidersFailed) as exc_info:
        await build(provider_config, transport).generate(MESSAGES)

    assert transport.calls == [GEMINI_MODEL, GROQ_MODEL, OPENAI_MODEL]
    assert str(exc_info.value.last_error) == "last"
    assert len(exc_info.value.failures) == 3
    assert isinstance(exc_info.value, ExhaustionError)


@pytest.mark.asyncio
async def test_no_providers(make_transport):
    orchestrator = FallbackOrchestrator(
        registry=ProviderRegistry({}),
        transport_factory=lambda kind: make_transport(),
    )
    with pytest.raises(NoProvidersConfigured) as exc_info:
        await orchestrator.generate(MESSAGES)
    assert "GROQ_API_KEY" in str(exc_info.value)


@pytest.mark.asyncio
async def test_restricted_chain(provider_config, make_transport):
    transport = make_transport({GEMINI_MODEL: "from gemini", GROQ_MODEL: "from groq"})
    registry = ProviderRegistry(provider_config)
    groq = [d for d in registry.available_providers() if d.model == GROQ_MODEL]

    orchestrator = FallbackOrchestrator(registry=registry, transport_factory=lambda kind: transport)
    result = await orchestrator.generate(MESSAGES, providers=groq)

    assert result.content == "from groq"
    assert transport.calls == [GROQ_MODEL]


@pytest.mark.asyncio
async def test_per_call_timeout(provider_config, make_transport):
    transport = make_transport({GEMINI_MODEL: 1.0, GROQ_MODEL: "from groq"})
    options = CallOptions(timeout=0.05)

    result = await build(provider_config, transport).generate(MESSAGES, options=options)

    assert result.provider == "groq"
    assert result.attempts[0].error.kind is ErrorKind.TRANSIENT
