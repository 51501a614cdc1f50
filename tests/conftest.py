# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
from typing import Dict, List, Optional, Union

import pytest

from medical_interpreter.providers.base import (
    BaseTransport,
    CallOptions,
    ProviderDescriptor,
    TransportKind,
)
from medical_interpreter.utils.exceptions import ErrorKind, TransportError

GATEWAY_KEY = "sk-or-v1-test-gateway-key"

Reply = Union[str, Exception, float]


class FakeTransport(BaseTransport):
    """
    In-memory transport.

    ``replies`` maps a model name to a string (returned), an exception
    (raised) or a float (sleep that long, used to force timeouts).
    """

    def __init__(self, replies: Optional[Dict[str, Reply]] = None, kind=TransportKind.OPENAI_CHAT):
        super().__init__({})
        self.replies = replies or {}
        self._kind = kind
        self.calls: List[str] = []

    @property
    def kind(self) -> TransportKind:
        return self._kind

    async def call(
        self,
        descriptor: ProviderDescriptor,
        messages,
        system_prompt=None,
        options: Optional[CallOptions] = None,
    ) -> str:
        self.calls.append(descriptor.model)
        reply = self.replies.get(descriptor.model)
        if reply is None:
            raise TransportError(f"no reply for {descriptor.model}", ErrorKind.TRANSIENT)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, float):
            await asyncio.sleep(reply)
            return "{}"
        return reply

    async def _request(self, descriptor, model, messages, system_prompt, temperature, max_tokens):
        raise NotImplementedError


@pytest.fixture
def provider_config():
    """Config with direct Gemini, Groq and OpenAI keys plus an OpenRouter key for Anthropic"""
    return {
        "gemini_api_key": "AIza-test",
        "gemini_model": "",
        "groq_api_key": "gsk_test",
        "groq_model": "llama-3.3-70b-versatile",
        "huggingface_api_key": "your_huggingface_api_key_here",
        "huggingface_model": "",
        "openai_api_key": "sk-test",
        "openai_model": "gpt-4o-mini",
        "perplexity_api_key": "",
        "perplexity_model": "",
        "anthropic_api_key": GATEWAY_KEY,
        "anthropic_model": "anthropic/claude-3.5-sonnet",
        "client_origin": "http://localhost:5173",
        "app_title": "MedEase - Medical Report Analysis",
        "provider_timeout": 5,
        "youtube_api_key": "",
        "drugbank_api_key": "",
        "specialist_region": "India",
        "dev_mode": False,
    }


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances"""
    return FakeTransport


@pytest.fixture
def sample_lab_text():
    """Sample lab report text with two abnormal and two normal results"""
    return """
    City Diagnostics Laboratory Report

    Patient: Jane Doe
    Date: 2024-01-15

    COMPLETE BLOOD COUNT (CBC)
    ----------------------------------------------------------------
    Hemoglobin 9.2 g/dL 12.0-15.5 Low
    Glucose 95 mg/dL 70-100 Normal
    WBC 7.2 K/uL 4.5-11.0 Normal
    Ferritin 8 ng/mL 15-150 Low
    """
