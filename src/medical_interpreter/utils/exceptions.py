# ============================================================================
# src/medical_interpreter/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the medical report interpreter.

Only ExhaustionError (and ConfigurationError when nothing is configured)
leaves the orchestration core. TransportError and ResponseParseError are
recovered inside it.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Classification of a single provider failure."""
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    MODEL_NOT_FOUND = "model_not_found"
    BAD_REQUEST = "bad_request"
    TRANSIENT = "transient"


class InterpreterError(Exception):
    """Base exception for all interpreter errors."""
    pass


class ConfigurationError(InterpreterError):
    """Invalid or missing configuration."""
    pass


class NoProvidersConfigured(ConfigurationError):
    """No provider credentials are present."""

    HINT = (
        "Set at least one API key (GEMINI_API_KEY, GROQ_API_KEY, "
        "HUGGINGFACE_API_KEY, OPENAI_API_KEY or PERPLEXITY_API_KEY) in .env"
    )

    def __init__(self, message: str = "No AI providers configured"):
        super().__init__(f"{message}. {self.HINT}")


class TransportError(InterpreterError):
    """A provider call failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        status: Optional[int] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.provider = provider
        self.model = model

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "kind": self.kind.value,
            "status": self.status,
            "error": str(self)[:200],
        }


class ResponseParseError(InterpreterError):
    """Provider returned text that holds no JSON object."""
    pass


class ExhaustionError(InterpreterError):
    """Not enough providers succeeded."""
    pass


class AllProvidersFailed(ExhaustionError):
    """Every provider in the fallback chain failed."""

    def __init__(self, last_error: Optional[Exception], failures: List[TransportError]):
        detail = str(last_error) if last_error else "Unknown error"
        super().__init__(
            f"All AI providers failed after {len(failures)} attempt(s). "
            f"Last error: {detail}"
        )
        self.last_error = last_error
        self.failures = failures


class InsufficientProviders(ExhaustionError):
    """Fewer providers than required answered a consensus fan-out."""

    def __init__(self, received: int, required: int):
        super().__init__(
            f"Insufficient providers responded. Got {received}, needed {required}"
        )
        self.received = received
        self.required = required


_RATE_LIMIT = re.compile(r"rate.?limit|too many requests|quota", re.IGNORECASE)
_AUTH = re.compile(r"api.?key|unauthori[sz]ed|authentication|forbidden", re.IGNORECASE)
_NOT_FOUND = re.compile(
    r"not found|decommissioned|does not exist|no such model|not a valid model",
    re.IGNORECASE,
)


def classify_failure(status: Optional[int], message: str = "") -> ErrorKind:
    """
    Map an HTTP status and/or error text to an ErrorKind.

    Status codes win over message heuristics.
    """
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status in (401, 403):
        return ErrorKind.AUTH
    if status in (404, 410):
        return ErrorKind.MODEL_NOT_FOUND

    message = message or ""
    if status == 400:
        if _NOT_FOUND.search(message):
            return ErrorKind.MODEL_NOT_FOUND
        return ErrorKind.BAD_REQUEST

    if _RATE_LIMIT.search(message):
        return ErrorKind.RATE_LIMIT
    if _AUTH.search(message):
        return ErrorKind.AUTH
    if _NOT_FOUND.search(message):
        return ErrorKind.MODEL_NOT_FOUND
    return ErrorKind.TRANSIENT
