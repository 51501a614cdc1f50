# ============================================================================
# src/medical_interpreter/providers/base.py
# ============================================================================
"""
Base Provider Transport Interface

Defines the descriptors shared by the registry and orchestrators, and the
abstract transport every backend family implements.
Supported transport families:
- openai_chat: OpenAI-compatible chat completions (Groq, OpenAI, Perplexity, OpenRouter)
- gemini: Google Generative Language REST API
- huggingface: Hugging Face Inference API (single-turn text generation)
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from json_repair import repair_json

from ..core.config import get_config
from ..utils.exceptions import ErrorKind, TransportError, classify_failure

Message = Dict[str, str]


class ProviderName(str, Enum):
    """Provider identities known to the registry."""
    GEMINI = "gemini"
    GROQ = "groq"
    HUGGINGFACE = "huggingface"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    PERPLEXITY = "perplexity"


class TransportKind(str, Enum):
    """Wire-format families."""
    OPENAI_CHAT = "openai_chat"
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"


@dataclass(frozen=True)
class ProviderDescriptor:
    """
    One configured provider.

    Built by the registry from configuration and never mutated afterwards.
    The credential travels with the descriptor so transports never read
    the environment themselves.
    """
    name: ProviderName
    model: str
    priority: int
    transport: TransportKind
    credential: str = field(default="", repr=False, compare=False)
    key_source: str = ""


@dataclass
class CallOptions:
    """Per-call generation options; unset sampling values come from TEMPERATURE and MAX_TOKENS."""
    preferred_order: Sequence[str] = ()
    temperature: float = field(default_factory=lambda: get_config()["temperature"])
    max_tokens: int = field(default_factory=lambda: get_config()["max_tokens"])
    model: Optional[str] = None
    timeout: Optional[float] = None


@dataclass
class ProviderResult:
    """Outcome of one provider attempt."""
    provider: ProviderName
    model: str
    priority: int
    content: str = ""
    success: bool = False
    error: Optional[TransportError] = None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class BaseTransport(ABC):
    """
    Abstract base class for provider transports.

    Subclasses implement:
    - kind: the TransportKind they serve
    - _request(): one HTTP round trip for one model, returning non-empty text
    - fallback_models(): models to try when the requested one is unavailable

    call() owns clamping and the fallback-model walk.
    """

    TEMPERATURE_RANGE: Tuple[float, float] = (0.0, 2.0)
    MAX_TOKENS_RANGE: Tuple[int, int] = (1, 32000)

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)
        self.request_timeout = self.config.get('provider_timeout', 60)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    @abstractmethod
    def kind(self) -> TransportKind:
        """Return the transport family."""
        pass

    @abstractmethod
    async def _request(
        self,
        descriptor: ProviderDescriptor,
        model: str,
        messages: List[Message],
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Issue one request against one model.

        Returns non-empty text or raises TransportError.
        """
        pass

    def fallback_models(self, descriptor: ProviderDescriptor, model: str) -> List[str]:
        """Models to try, in order, after ``model`` was not found."""
        return []

    def clamp_parameters(self, temperature: float, max_tokens: int) -> Tuple[float, int]:
        low_t, high_t = self.TEMPERATURE_RANGE
        low_m, high_m = self.MAX_TOKENS_RANGE
        return clamp(float(temperature), low_t, high_t), int(clamp(int(max_tokens), low_m, high_m))

    async def call(
        self,
        descriptor: ProviderDescriptor,
        messages: List[Message],
        system_prompt: Optional[str] = None,
        options: Optional[CallOptions] = None,
    ) -> str:
        """
        Generate text from one provider.

        On a model-not-found failure the family's fallback models are tried
        in order. A bad-request answer from a fallback model stops the walk.
        The original error is raised when no fallback model succeeds.
        """
        options = options or CallOptions()
        model = options.model or descriptor.model
        temperature, max_tokens = self.clamp_parameters(options.temperature, options.max_tokens)

        try:
            return await self._request(descriptor, model, messages, system_prompt, temperature, max_tokens)
        except TransportError as err:
            if err.kind is not ErrorKind.MODEL_NOT_FOUND:
                raise
            original = err

        for fallback_model in self.fallback_models(descriptor, model):
            if fallback_model == model:
                continue
            try:
                text = await self._request(
                    descriptor, fallback_model, messages, system_prompt, temperature, max_tokens
                )
            except TransportError as err:
                if err.kind is ErrorKind.BAD_REQUEST:
                    self.logger.info(
                        f"Model {fallback_model} returned 400, skipping remaining fallbacks"
                    )
                    break
                self.logger.debug(f"Fallback model {fallback_model} failed: {err}")
                continue
            self.logger.info(f"{descriptor.name.value}: fell back from {model} to {fallback_model}")
            return text

        raise original

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is None
            or self._session_loop != current_loop
            or self._session_loop.is_closed()
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                try:
                    await self._session.close()
                except (aiohttp.ClientError, RuntimeError) as e:
                    self.logger.debug(f"Ignoring error closing stale session: {e}")

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, Any]:
        """
        POST a JSON body and return (status, decoded body).

        The body is decoded as JSON when possible, otherwise returned as text.
        Connection errors and timeouts surface as transient TransportErrors.
        """
        session = await self._get_session()

        async def _do_request():
            async with session.post(url, json=payload, headers=headers, params=params) as response:
                text = await response.text()
                try:
                    data = json.loads(text) if text else None
                except ValueError:
                    data = text
                return response.status, data

        try:
            return await asyncio.wait_for(_do_request(), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise TransportError(
                f"Request timed out after {self.request_timeout}s", ErrorKind.TRANSIENT
            )
        except aiohttp.ClientError as e:
            raise TransportError(f"Connection failed: {e}", ErrorKind.TRANSIENT)

    def _raise_for_status(
        self,
        status: int,
        data: Any,
        descriptor: ProviderDescriptor,
        model: str,
    ) -> None:
        """Raise a classified TransportError for any non-2xx status."""
        if 200 <= status < 300:
            return
        message = _error_message(data)
        raise TransportError(
            f"{descriptor.name.value} API error ({status}): {message[:200]}",
            kind=classify_failure(status, message),
            status=status,
            provider=descriptor.name.value,
            model=model,
        )

    def _empty_response(self, descriptor: ProviderDescriptor, model: str) -> TransportError:
        return TransportError(
            f"{descriptor.name.value} returned empty response",
            kind=ErrorKind.TRANSIENT,
            provider=descriptor.name.value,
            model=model,
        )

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def extract_json(self, response_text: str) -> Optional[Dict]:
        """Extract the leading JSON object from generated text."""
        return extract_json_object(response_text, self.logger)


def _error_message(data: Any) -> str:
    """Pull a readable message out of a provider error body."""
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str):
            return error
        if data.get('message'):
            return str(data['message'])
        return json.dumps(data)
    return str(data or '')


def extract_json_object(response_text: str, logger: Optional[logging.Logger] = None) -> Optional[Dict]:
    """
    Extract a JSON object from LLM output.

    LLMs often return JSON embedded in prose or code fences:
    "Here is the analysis: {"key": "value"}"

    Order of attempts: whole text, first balanced {...} span, json_repair on
    that span. Only dict results count.
    """
    logger = logger or logging.getLogger(__name__)

    if not response_text or not response_text.strip():
        return None

    text = response_text.strip()

    # Try 1: Direct parse of entire response
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    start_idx = text.find('{')
    if start_idx == -1:
        logger.debug("No JSON object found in response")
        return None

    # Try 2: Balanced-brace span, skipping braces inside strings
    depth = 0
    end_idx = -1
    in_string = False
    escaped = False
    for i in range(start_idx, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                end_idx = i
                break

    json_str = text[start_idx:end_idx + 1] if end_idx != -1 else text[start_idx:]

    try:
        parsed = json.loads(json_str)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    # Try 3: json_repair on the extracted span (single quotes, trailing commas, truncation)
    try:
        repaired = repair_json(json_str, return_objects=True)
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug(f"json_repair failed on extracted block: {e}")
        return None

    if isinstance(repaired, dict) and repaired:
        logger.debug("json_repair fixed extracted JSON block")
        return repaired

    logger.warning(f"Could not parse JSON from response: {text[:200]}...")
    return None
