# ============================================================================
# FILE: tests/unit/test_transports.py
# ============================================================================
"""
Unit tests for provider transports (HTTP layer mocked)
"""

import pytest

from medical_interpreter.providers.base import (
    CallOptions,
    ProviderDescriptor,
    ProviderName,
    TransportKind,
    extract_json_object,
)
from medical_interpreter.providers.client import get_transport
from medical_interpreter.providers.gemini import GeminiTransport, combine_prompt
from medical_interpreter.providers.huggingface import HuggingFaceTransport
from medical_interpreter.providers.openai_compatible import OpenAICompatibleTransport
from medical_interpreter.utils.exceptions import ErrorKind, TransportError, classify_failure

MESSAGES = [{"role": "user", "content": "Interpret this report"}]

GROQ = ProviderDescriptor(
    name=ProviderName.GROQ,
    model="llama-3.3-70b-versatile",
    priority=1,
    transport=TransportKind.OPENAI_CHAT,
    credential="gsk_test",
    key_source="GROQ_API_KEY",
)


def chat_reply(text):
    return 200, {"choices": [{"message": {"role": "assistant", "content": text}}]}


def install_responses(transport, responses):
    """Replace _post_json with a stub answering by model name; returns the request log."""
    requests = []

    async def fake_post_json(url, payload, headers=None, params=None):
        model = payload.get("model") or url
        requests.append({"url": url, "payload": payload, "headers": headers, "params": params})
        for key, response in responses.items():
            if key == model or key in url:
                return response
        return 404, {"error": {"message": f"model {model} not found"}}

    transport._post_json = fake_post_json
    return requests


class TestClassifyFailure:
    """Test provider failure classification"""

    def test_status_codes(self):
        assert classify_failure(429) is ErrorKind.RATE_LIMIT
        assert classify_failure(401) is ErrorKind.AUTH
        assert classify_failure(403) is ErrorKind.AUTH
        assert classify_failure(404) is ErrorKind.MODEL_NOT_FOUND
        assert classify_failure(500) is ErrorKind.TRANSIENT

    def test_bad_request_naming_a_missing_model(self):
        assert classify_failure(400, "The model `x` has been decommissioned") is ErrorKind.MODEL_NOT_FOUND
        assert classify_failure(400, "max_tokens too large") is ErrorKind.BAD_REQUEST

    def test_message_heuristics(self):
        assert classify_failure(None, "Rate limit exceeded") is ErrorKind.RATE_LIMIT
        assert classify_failure(None, "Invalid API key") is ErrorKind.AUTH


class TestOpenAICompatible:
    """Test the chat-completions transport"""

    @pytest.mark.asyncio
    async def test_success_payload(self):
        transport = OpenAICompatibleTransport({})
        requests = install_responses(transport, {"llama-3.3-70b-versatile": chat_reply("  hello  ")})

        text = await transport.call(GROQ, MESSAGES, "Be brief", CallOptions(temperature=0.3, max_tokens=100))

        assert text == "hello"
        payload = requests[0]["payload"]
        assert payload["messages"][0] == {"role": "system", "content": "Be brief"}
        assert payload["temperature"] == 0.3
        assert payload["max_tokens"] == 100
        assert requests[0]["headers"]["Authorization"] == "Bearer gsk_test"

    @pytest.mark.asyncio
    async def test_model_not_found_walks_fallbacks(self):
        transport = OpenAICompatibleTransport({})
        requests = install_responses(transport, {"llama-3.3-70b-versatile": chat_reply("ok")})

        text = await transport.call(GROQ, MESSAGES, None, CallOptions(model="retired-model"))

        assert text == "ok"
        assert [r["payload"]["model"] for r in requests] == ["retired-model", "llama-3.3-70b-versatile"]

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_walk_fallbacks(self):
        transport = OpenAICompatibleTransport({})
        requests = install_responses(
            transport, {"llama-3.3-70b-versatile": (429, {"error": {"message": "slow down"}})}
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.call(GROQ, MESSAGES)

        assert exc_info.value.kind is ErrorKind.RATE_LIMIT
        assert exc_info.value.status == 429
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_bad_request_stops_walk_and_raises_original(self):
        transport = OpenAICompatibleTransport({})
        requests = install_responses(
            transport, {"llama-3.3-70b-versatile": (400, {"error": {"message": "context too long"}})}
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.call(GROQ, MESSAGES, None, CallOptions(model="retired-model"))

        assert exc_info.value.kind is ErrorKind.MODEL_NOT_FOUND
        assert exc_info.value.model == "retired-model"
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self):
        transport = OpenAICompatibleTransport({})
        install_responses(transport, {"llama-3.3-70b-versatile": chat_reply("   ")})

        with pytest.raises(TransportError) as exc_info:
            await transport.call(GROQ, MESSAGES)
        assert exc_info.value.kind is ErrorKind.TRANSIENT

    def test_gateway_headers(self):
        transport = OpenAICompatibleTransport({"client_origin": "https://app.example", "app_title": "Reports"})
        descriptor = ProviderDescriptor(
            name=ProviderName.OPENROUTER,
            model="google/gemini-2.0-flash-exp",
            priority=1,
            transport=TransportKind.OPENAI_CHAT,
            credential="sk-or-v1-x",
        )

        headers = transport.build_headers(descriptor)

        assert headers["HTTP-Referer"] == "https://app.example"
        assert headers["X-Title"] == "Reports"
        assert "HTTP-Referer" not in transport.build_headers(GROQ)

    def test_clamping(self):
        transport = OpenAICompatibleTransport({})
        assert transport.clamp_parameters(5.0, 100000) == (2.0, 32000)
        assert transport.clamp_parameters(-1, 0) == (0.0, 1)


class TestGemini:
    """Test the Gemini REST transport"""

    def test_combine_prompt(self):
        combined = combine_prompt(
            [{"role": "user", "content": "Q"}, {"role": "assistant", "content": "A"}],
            "System",
        )
        assert combined == "System\n\nQ\n\nAssistant: A"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        transport = GeminiTransport({})
        reply = (200, {"candidates": [{"content": {"parts": [{"text": "part one "}, {"text": "two"}]}}]})
        requests = install_responses(transport, {"gemini-2.0-flash-exp": reply})
        descriptor = ProviderDescriptor(
            name=ProviderName.GEMINI,
            model="gemini-2.0-flash-exp",
            priority=1,
            transport=TransportKind.GEMINI,
            credential="AIza-test",
        )

        text = await transport.call(descriptor, MESSAGES, "System", CallOptions(max_tokens=50000))

        assert text == "part one two"
        assert requests[0]["params"] == {"key": "AIza-test"}
        assert requests[0]["payload"]["generationConfig"]["maxOutputTokens"] == 8192
        assert requests[0]["payload"]["contents"][0]["parts"][0]["text"].startswith("System")


class TestHuggingFace:
    """Test the Inference API transport"""

    def test_clamping(self):
        transport = HuggingFaceTransport({})
        assert transport.clamp_parameters(0.0, 5000) == (0.01, 2000)

    @pytest.mark.asyncio
    async def test_generated_text(self):
        transport = HuggingFaceTransport({})
        install_responses(transport, {"mistralai": (200, [{"generated_text": "answer"}])})
        descriptor = ProviderDescriptor(
            name=ProviderName.HUGGINGFACE,
            model="mistralai/Mistral-7B-Instruct-v0.2",
            priority=1,
            transport=TransportKind.HUGGINGFACE,
            credential="hf_test",
        )

        assert await transport.call(descriptor, MESSAGES) == "answer"


class TestTransportFactory:
    """Test transport selection"""

    def test_kinds(self):
        assert isinstance(get_transport(TransportKind.GEMINI, {}), GeminiTransport)
        assert isinstance(get_transport(TransportKind.HUGGINGFACE, {}), HuggingFaceTransport)
        assert isinstance(get_transport(TransportKind.OPENAI_CHAT, {}), OpenAICompatibleTransport)

    def test_explicit_config_is_not_cached(self):
        assert get_transport(TransportKind.GEMINI, {}) is not get_transport(TransportKind.GEMINI, {})


class TestExtractJson:
    """Test JSON recovery from generated text"""

    def test_plain(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_embedded_in_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": "}"}} hope it helps') == {"a": {"b": "}"}}

    def test_code_fence(self):
        assert extract_json_object('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_repairs_trailing_comma(self):
        assert extract_json_object('{"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}

    def test_not_an_object(self):
        assert extract_json_object("[1, 2, 3]") is None
        assert extract_json_object("no json here") is None
        assert extract_json_object("") is None
