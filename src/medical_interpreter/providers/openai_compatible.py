# ============================================================================
# src/medical_interpreter/providers/openai_compatible.py
# ============================================================================
"""
OpenAI-compatible chat-completions transport.

Serves every backend that speaks the /chat/completions wire format:
Groq, OpenAI, Perplexity and the OpenRouter gateway. Only the endpoint,
the attribution headers and the fallback-model lists differ.
"""

from typing import Any, Dict, List, Optional

from .base import BaseTransport, Message, ProviderDescriptor, ProviderName, TransportKind
from ..utils.exceptions import ErrorKind, TransportError

ENDPOINTS = {
    ProviderName.GROQ: "https://api.groq.com/openai/v1/chat/completions",
    ProviderName.OPENAI: "https://api.openai.com/v1/chat/completions",
    ProviderName.PERPLEXITY: "https://api.perplexity.ai/chat/completions",
    ProviderName.OPENROUTER: "https://openrouter.ai/api/v1/chat/completions",
}

GROQ_FALLBACK_MODELS = [
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
    "llama-3.1-70b-versatile",
    "llama3-8b-8192",
    "mixtral-8x7b-32768",
]

OPENROUTER_PERPLEXITY_FALLBACKS = [
    "perplexity/llama-3.1-sonar-large-128k-online",
    "perplexity/llama-3.1-sonar-huge-128k-online",
    "perplexity/llama-3.1-sonar-small-128k-online",
    "google/gemini-2.0-flash-exp",
]

OPENROUTER_ANTHROPIC_FALLBACKS = [
    "anthropic/claude-3-haiku",
    "anthropic/claude-3-opus",
    "google/gemini-2.0-flash-exp",
]

OPENROUTER_DEFAULT_FALLBACKS = [
    "google/gemini-2.0-flash",
    "google/gemini-pro",
    "google/gemini-flash-1.5",
    "anthropic/claude-3-haiku",
]


class OpenAICompatibleTransport(BaseTransport):
    """Chat-completions transport for OpenAI-shaped APIs."""

    TEMPERATURE_RANGE = (0.0, 2.0)
    MAX_TOKENS_RANGE = (1, 32000)

    @property
    def kind(self) -> TransportKind:
        return TransportKind.OPENAI_CHAT

    def fallback_models(self, descriptor: ProviderDescriptor, model: str) -> List[str]:
        if descriptor.name is ProviderName.GROQ:
            return [descriptor.model] + GROQ_FALLBACK_MODELS
        if descriptor.name is ProviderName.OPENROUTER:
            lowered = model.lower()
            if "perplexity" in lowered or "sonar" in lowered:
                return OPENROUTER_PERPLEXITY_FALLBACKS
            if "anthropic" in lowered or "claude" in lowered:
                return OPENROUTER_ANTHROPIC_FALLBACKS
            return OPENROUTER_DEFAULT_FALLBACKS
        return []

    def build_headers(self, descriptor: ProviderDescriptor) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {descriptor.credential}",
            "Content-Type": "application/json",
        }
        if descriptor.name is ProviderName.OPENROUTER:
            headers["HTTP-Referer"] = self.config.get("client_origin", "http://localhost:5173")
            headers["X-Title"] = self.config.get("app_title", "MedEase - Medical Report Analysis")
        return headers

    @staticmethod
    def build_messages(messages: List[Message], system_prompt: Optional[str]) -> List[Message]:
        chat: List[Message] = []
        if system_prompt:
            chat.append({"role": "system", "content": system_prompt})
        chat.extend(messages)
        return chat

    async def _request(
        self,
        descriptor: ProviderDescriptor,
        model: str,
        messages: List[Message],
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        url = ENDPOINTS.get(descriptor.name)
        if url is None:
            raise TransportError(
                f"No chat-completions endpoint for {descriptor.name.value}",
                kind=ErrorKind.BAD_REQUEST,
                provider=descriptor.name.value,
                model=model,
            )

        payload = {
            "model": model,
            "messages": self.build_messages(messages, system_prompt),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        self.logger.debug(f"{descriptor.name.value} request: model={model}, max_tokens={max_tokens}")
        status, data = await self._post_json(url, payload, headers=self.build_headers(descriptor))
        self._raise_for_status(status, data, descriptor, model)

        text = _message_content(data)
        if not text or not text.strip():
            raise self._empty_response(descriptor, model)
        return text.strip()


def _message_content(data: Any) -> str:
    """choices[0].message.content, or empty on any other shape."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""
