# ============================================================================
# src/medical_interpreter/providers/gemini.py
# ============================================================================
"""
Google Generative Language transport (direct Gemini keys).

generateContent takes one user turn, so the system prompt and the chat
turns are concatenated into a single prompt.
"""

from typing import Any, List, Optional

from .base import BaseTransport, Message, ProviderDescriptor, TransportKind

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

GEMINI_FALLBACK_MODELS = [
    "gemini-2.0-flash",
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash-lite",
]


def combine_prompt(messages: List[Message], system_prompt: Optional[str]) -> str:
    """Flatten system prompt and turns into one text block."""
    parts = []
    if system_prompt:
        parts.append(system_prompt)
    for message in messages:
        content = message.get("content", "")
        if message.get("role") == "assistant":
            parts.append(f"Assistant: {content}")
        else:
            parts.append(content)
    return "\n\n".join(part for part in parts if part)


class GeminiTransport(BaseTransport):
    """Direct Gemini REST transport."""

    TEMPERATURE_RANGE = (0.0, 2.0)
    MAX_TOKENS_RANGE = (1, 8192)

    @property
    def kind(self) -> TransportKind:
        return TransportKind.GEMINI

    def fallback_models(self, descriptor: ProviderDescriptor, model: str) -> List[str]:
        return GEMINI_FALLBACK_MODELS

    async def _request(
        self,
        descriptor: ProviderDescriptor,
        model: str,
        messages: List[Message],
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        payload = {
            "contents": [{"parts": [{"text": combine_prompt(messages, system_prompt)}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

        status, data = await self._post_json(
            GEMINI_ENDPOINT.format(model=model),
            payload,
            headers={"Content-Type": "application/json"},
            params={"key": descriptor.credential},
        )
        self._raise_for_status(status, data, descriptor, model)

        text = _candidate_text(data)
        if not text or not text.strip():
            raise self._empty_response(descriptor, model)
        return text.strip()


def _candidate_text(data: Any) -> str:
    """candidates[0].content.parts[*].text joined."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))
