# ============================================================================
# src/medical_interpreter/providers/registry.py
# ============================================================================
"""
Provider Registry

Discovers usable providers from configured credentials and orders them.

Default priority:
    1. Gemini       (medical-capable, fastest; OpenRouter when the key is a gateway key)
    2. Groq         (general-purpose fast inference)
    3. Hugging Face (backup tier)
    4. OpenAI       (backup tier)
    5. Perplexity   (backup tier; OpenRouter when the key is a gateway key)

A credential that carries the OpenRouter prefix is routed to the gateway
whichever variable it was configured under. No network I/O happens here.
"""

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import ProviderDescriptor, ProviderName, TransportKind
from ..core.config import get_config

GATEWAY_PREFIX = "sk-or-v1-"

_PLACEHOLDER = re.compile(r"^your_.*_here$", re.IGNORECASE)

# family -> (config key, env var, direct provider, direct transport, direct default model, gateway model)
_FAMILIES: List[Tuple[str, str, str, ProviderName, TransportKind, str, str]] = [
    ("gemini", "gemini_api_key", "GEMINI_API_KEY", ProviderName.GEMINI,
     TransportKind.GEMINI, "gemini-2.0-flash-exp", "google/gemini-2.0-flash-exp"),
    ("groq", "groq_api_key", "GROQ_API_KEY", ProviderName.GROQ,
     TransportKind.OPENAI_CHAT, "llama-3.3-70b-versatile", "meta-llama/llama-3.3-70b-instruct"),
    ("huggingface", "huggingface_api_key", "HUGGINGFACE_API_KEY", ProviderName.HUGGINGFACE,
     TransportKind.HUGGINGFACE, "mistralai/Mistral-7B-Instruct-v0.2", "mistralai/mistral-7b-instruct"),
    ("openai", "openai_api_key", "OPENAI_API_KEY", ProviderName.OPENAI,
     TransportKind.OPENAI_CHAT, "gpt-4o-mini", "openai/gpt-4o-mini"),
    ("perplexity", "perplexity_api_key", "PERPLEXITY_API_KEY", ProviderName.PERPLEXITY,
     TransportKind.OPENAI_CHAT, "llama-3.1-sonar-large-32k-online",
     "perplexity/llama-3.1-sonar-large-32k-online"),
]

CONSENSUS_FAMILIES = ("gemini", "anthropic", "groq", "openai")


def is_usable_credential(value: Optional[str]) -> bool:
    """Non-empty and not a ``your_*_here`` placeholder."""
    if value is None:
        return False
    value = value.strip()
    return bool(value) and not _PLACEHOLDER.match(value)


def is_gateway_credential(value: Optional[str]) -> bool:
    return is_usable_credential(value) and value.strip().startswith(GATEWAY_PREFIX)


def family_of(descriptor: ProviderDescriptor) -> str:
    """Provider family a descriptor was discovered from ("gemini" for GEMINI_API_KEY)."""
    if descriptor.key_source.endswith("_API_KEY"):
        return descriptor.key_source[: -len("_API_KEY")].lower()
    return descriptor.name.value


def order_by_preference(
    descriptors: Sequence[ProviderDescriptor],
    preferred_order: Optional[Sequence[str]] = None,
) -> List[ProviderDescriptor]:
    """
    Stable re-sort by rank in ``preferred_order``.

    A descriptor matches a preferred entry by provider name or by family;
    unnamed descriptors keep their default order after all named ones.
    Priorities are renumbered 1..n over the result.
    """
    ordered = list(descriptors)
    if preferred_order:
        ranks = {name.lower(): i for i, name in reversed(list(enumerate(preferred_order)))}
        unranked = len(ranks)

        def rank(descriptor: ProviderDescriptor) -> int:
            return min(
                ranks.get(descriptor.name.value, unranked),
                ranks.get(family_of(descriptor), unranked),
            )

        ordered.sort(key=rank)
    return [replace(d, priority=i + 1) for i, d in enumerate(ordered)]


class ProviderRegistry:
    """
    Pure configuration inspection over credentials.

    Calls are idempotent: identical configuration yields identical output.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else get_config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _credential(self, key: str) -> str:
        return (self.config.get(key) or "").strip()

    def _family_descriptor(self, family: str) -> Optional[ProviderDescriptor]:
        for fam, key, env, direct, transport, default_model, gateway_model in _FAMILIES:
            if fam != family:
                continue
            credential = self._credential(key)
            if not is_usable_credential(credential):
                return None
            configured_model = self.config.get(f"{fam}_model") or ""
            if is_gateway_credential(credential):
                model = configured_model if "/" in configured_model else gateway_model
                return ProviderDescriptor(
                    name=ProviderName.OPENROUTER,
                    model=model,
                    priority=0,
                    transport=TransportKind.OPENAI_CHAT,
                    credential=credential,
                    key_source=env,
                )
            return ProviderDescriptor(
                name=direct,
                model=configured_model or default_model,
                priority=0,
                transport=transport,
                credential=credential,
                key_source=env,
            )
        return None

    def _anthropic_descriptor(self) -> Optional[ProviderDescriptor]:
        credential = self._credential("anthropic_api_key")
        if not is_gateway_credential(credential):
            return None
        return ProviderDescriptor(
            name=ProviderName.OPENROUTER,
            model=self.config.get("anthropic_model") or "anthropic/claude-3.5-sonnet",
            priority=0,
            transport=TransportKind.OPENAI_CHAT,
            credential=credential,
            key_source="ANTHROPIC_API_KEY",
        )

    def available_providers(
        self, preferred_order: Optional[Sequence[str]] = None
    ) -> List[ProviderDescriptor]:
        """
        Ordered fallback-chain providers.

        Default order is the fixed family priority; ``preferred_order``
        re-sorts named providers to the front.
        """
        found = [
            descriptor
            for descriptor in (self._family_descriptor(family[0]) for family in _FAMILIES)
            if descriptor is not None
        ]
        return order_by_preference(found, preferred_order)

    def consensus_providers(self) -> List[ProviderDescriptor]:
        """
        Consensus roster: Gemini, Anthropic via the gateway, Groq, OpenAI.

        Priorities are fixed by roster position so a missing member leaves
        a gap rather than promoting the next one.
        """
        roster: List[ProviderDescriptor] = []
        for priority, family in enumerate(CONSENSUS_FAMILIES, start=1):
            if family == "anthropic":
                descriptor = self._anthropic_descriptor()
            else:
                descriptor = self._family_descriptor(family)
            if descriptor is not None:
                roster.append(replace(descriptor, priority=priority))
        return roster

    def status(self) -> Dict[str, Any]:
        """Per-family configuration report (no secrets)."""
        report: Dict[str, Any] = {}
        for family, key, *_ in _FAMILIES:
            report[family] = _status_label(self._credential(key))
        report["anthropic"] = (
            "configured (via OpenRouter)"
            if is_gateway_credential(self._credential("anthropic_api_key"))
            else "not configured"
        )

        available = self.available_providers()
        report["available"] = [family_of(d) for d in available]

        has_gateway = any(
            is_gateway_credential(self._credential(key))
            for key in ("gemini_api_key", "anthropic_api_key")
        )
        has_fast_tier = any(
            is_usable_credential(self._credential(key))
            for key in ("groq_api_key", "openai_api_key")
        )
        report["consensus"] = "enabled" if has_gateway and has_fast_tier else "partial"
        return report


def _status_label(credential: str) -> str:
    if is_gateway_credential(credential):
        return "configured (via OpenRouter)"
    if is_usable_credential(credential):
        return "configured"
    return "not configured"
