# ============================================================================
# src/medical_interpreter/providers/__init__.py
# ============================================================================
"""
LLM provider registry and transports.
"""

from .base import (
    BaseTransport,
    CallOptions,
    ProviderDescriptor,
    ProviderName,
    ProviderResult,
    TransportKind,
    extract_json_object,
)
from .client import close_transports, get_transport
from .registry import ProviderRegistry, is_gateway_credential, is_usable_credential

__all__ = [
    "BaseTransport",
    "CallOptions",
    "ProviderDescriptor",
    "ProviderName",
    "ProviderResult",
    "TransportKind",
    "extract_json_object",
    "close_transports",
    "get_transport",
    "ProviderRegistry",
    "is_gateway_credential",
    "is_usable_credential",
]
