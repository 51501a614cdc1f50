# ============================================================================
# src/medical_interpreter/providers/huggingface.py
# ============================================================================
"""
Hugging Face Inference API transport.

Text-generation models take a single prompt string; the response is a
list of {"generated_text": ...} objects (or a single object).
"""

from typing import Any, List, Optional

from .base import BaseTransport, Message, ProviderDescriptor, TransportKind
from .gemini import combine_prompt

HUGGINGFACE_ENDPOINT = "https://api-inference.huggingface.co/models/{model}"

HUGGINGFACE_FALLBACK_MODELS = [
    "mistralai/Mistral-7B-Instruct-v0.2",
    "meta-llama/Llama-2-7b-chat-hf",
    "google/flan-t5-large",
]


class HuggingFaceTransport(BaseTransport):
    """Inference API transport for single-turn text generation."""

    TEMPERATURE_RANGE = (0.01, 2.0)
    MAX_TOKENS_RANGE = (1, 2000)

    @property
    def kind(self) -> TransportKind:
        return TransportKind.HUGGINGFACE

    def fallback_models(self, descriptor: ProviderDescriptor, model: str) -> List[str]:
        return HUGGINGFACE_FALLBACK_MODELS

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
            "inputs": combine_prompt(messages, system_prompt),
            "parameters": {
                "temperature": temperature,
                "max_new_tokens": max_tokens,
                "return_full_text": False,
            },
        }
        headers = {
            "Authorization": f"Bearer {descriptor.credential}",
            "Content-Type": "application/json",
        }

        status, data = await self._post_json(
            HUGGINGFACE_ENDPOINT.format(model=model), payload, headers=headers
        )
        self._raise_for_status(status, data, descriptor, model)

        text = _generated_text(data)
        if not text or not text.strip():
            raise self._empty_response(descriptor, model)
        return text.strip()


def _generated_text(data: Any) -> str:
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        text = data.get("generated_text")
        return text if isinstance(text, str) else ""
    return ""
