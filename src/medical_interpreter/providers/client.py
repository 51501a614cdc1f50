# ============================================================================
# src/medical_interpreter/providers/client.py
# ============================================================================
"""
Transport Factory

Returns one transport per wire-format family. Transports are cached so the
HTTP session of each family is reused across calls.

Usage:
    from medical_interpreter.providers.client import get_transport

    transport = get_transport(descriptor.transport)
    text = await transport.call(descriptor, messages, system_prompt, options)
"""

import logging
from typing import Any, Dict, Optional, Type

from .base import BaseTransport, TransportKind
from .gemini import GeminiTransport
from .huggingface import HuggingFaceTransport
from .openai_compatible import OpenAICompatibleTransport
from ..core.config import get_config

logger = logging.getLogger(__name__)

TRANSPORTS: Dict[TransportKind, Type[BaseTransport]] = {
    TransportKind.OPENAI_CHAT: OpenAICompatibleTransport,
    TransportKind.GEMINI: GeminiTransport,
    TransportKind.HUGGINGFACE: HuggingFaceTransport,
}

# Cached transport instances
_transport_cache: Dict[TransportKind, BaseTransport] = {}


def get_transport(
    kind: TransportKind,
    config: Optional[Dict[str, Any]] = None,
) -> BaseTransport:
    """
    Get the transport for a wire-format family.

    A transport built with an explicit config is not cached.
    """
    if config is None and kind in _transport_cache:
        return _transport_cache[kind]

    transport_cls = TRANSPORTS.get(kind)
    if transport_cls is None:
        raise ValueError(f"Unknown transport kind: {kind}")

    transport = transport_cls(config if config is not None else get_config())
    logger.debug(f"Created {transport_cls.__name__} for {kind.value}")

    if config is None:
        _transport_cache[kind] = transport
    return transport


async def close_transports() -> None:
    """Close cached transports' HTTP sessions and clear the cache."""
    for transport in list(_transport_cache.values()):
        await transport.close()
    _transport_cache.clear()
