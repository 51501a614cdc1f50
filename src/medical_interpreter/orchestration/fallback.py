# ============================================================================
# src/medical_interpreter/orchestration/fallback.py
# ============================================================================
"""
Fallback Orchestrator

Tries providers strictly one at a time in priority order and returns the
first success. Failures are classified for logging and diagnostics:
- rate limited: move on immediately, no backoff
- auth: skip this provider for the call
- anything else: skip and continue
Only exhaustion of the list is fatal.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..providers.base import (
    BaseTransport,
    CallOptions,
    Message,
    ProviderDescriptor,
    ProviderResult,
    TransportKind,
)
from ..providers.client import get_transport
from ..providers.registry import ProviderRegistry
from ..utils.exceptions import (
    AllProvidersFailed,
    ErrorKind,
    NoProvidersConfigured,
    TransportError,
)

TransportFactory = Callable[[TransportKind], BaseTransport]


@dataclass
class GenerationResult:
    """Successful fallback-chain generation."""
    content: str
    provider: str
    model: str
    priority: int = 0
    attempts: List[ProviderResult] = field(default_factory=list)


class FallbackOrchestrator:
    """
    Sequential provider fallback chain.

    Later providers are only contacted after the earlier one has fully
    failed. No provider is retried within one call.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.registry = registry or ProviderRegistry()
        self.transport_factory = transport_factory or get_transport
        self.logger = logging.getLogger(self.__class__.__name__)

    async def generate(
        self,
        messages: List[Message],
        system_prompt: Optional[str] = None,
        options: Optional[CallOptions] = None,
        providers: Optional[Sequence[ProviderDescriptor]] = None,
    ) -> GenerationResult:
        """
        Return the first provider's successful content.

        ``providers`` restricts the chain to the given descriptors (used by
        consensus to run one roster member); otherwise the registry order,
        re-sorted by ``options.preferred_order``, is used.

        Raises:
            NoProvidersConfigured: nothing to try
            AllProvidersFailed: every attempt failed
        """
        options = options or CallOptions()
        chain = (
            list(providers)
            if providers is not None
            else self.registry.available_providers(options.preferred_order)
        )
        if not chain:
            raise NoProvidersConfigured()

        self.logger.info(f"Provider order: {' -> '.join(d.name.value for d in chain)}")

        attempts: List[ProviderResult] = []
        last_error: Optional[TransportError] = None

        for descriptor in chain:
            attempt = ProviderResult(
                provider=descriptor.name,
                model=options.model or descriptor.model,
                priority=descriptor.priority,
            )
            try:
                transport = self.transport_factory(descriptor.transport)
                content = await self._call(transport, descriptor, messages, system_prompt, options)
            except TransportError as err:
                attempt.error = err
                attempts.append(attempt)
                last_error = err
                self._log_failure(descriptor, err)
                continue

            attempt.content = content
            attempt.success = True
            attempts.append(attempt)
            self.logger.info(f"Success with {descriptor.name.value} ({attempt.model})")
            return GenerationResult(
                content=content,
                provider=descriptor.name.value,
                model=attempt.model,
                priority=descriptor.priority,
                attempts=attempts,
            )

        failures = [a.error for a in attempts if a.error is not None]
        self.logger.error(f"All {len(attempts)} provider(s) failed")
        raise AllProvidersFailed(last_error, failures)

    async def _call(
        self,
        transport: BaseTransport,
        descriptor: ProviderDescriptor,
        messages: List[Message],
        system_prompt: Optional[str],
        options: CallOptions,
    ) -> str:
        if not options.timeout:
            return await transport.call(descriptor, messages, system_prompt, options)
        try:
            return await asyncio.wait_for(
                transport.call(descriptor, messages, system_prompt, options),
                timeout=options.timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(
                f"Timed out after {options.timeout}s",
                kind=ErrorKind.TRANSIENT,
                provider=descriptor.name.value,
                model=descriptor.model,
            )

    def _log_failure(self, descriptor: ProviderDescriptor, err: TransportError) -> None:
        name = descriptor.name.value
        if err.kind is ErrorKind.RATE_LIMIT:
            self.logger.warning(f"{name} rate limited, trying next provider")
        elif err.kind is ErrorKind.AUTH:
            self.logger.warning(f"{name} authentication failed, skipping")
        else:
            self.logger.warning(f"{name} failed ({err.kind.value}): {str(err)[:200]}")
