# ============================================================================
# src/medical_interpreter/enrichers/base.py
# ============================================================================
"""
Base Enricher Interface

Enrichments are optional by contract. Every enricher returns an
EnrichmentOutcome (a value or a classified failure) instead of raising,
so the assembler can substitute an empty default and carry on.
"""

import asyncio
import logging
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import aiohttp

from ..config import enrichment_settings

T = TypeVar("T")


class EnrichmentErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    UPSTREAM_FAILED = "upstream_failed"
    PARSE_FAILED = "parse_failed"
    EMPTY = "empty"


@dataclass
class EnrichmentOutcome(Generic[T]):
    """Value or classified failure of one enrichment step."""
    value: Optional[T] = None
    error: Optional[EnrichmentErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "EnrichmentOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: EnrichmentErrorKind, message: str = "") -> "EnrichmentOutcome[T]":
        return cls(error=kind, message=message[:200])

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok and self.value is not None else default


class UpstreamError(Exception):
    """An enrichment collaborator could not be reached or answered non-2xx."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class Enricher(ABC):
    """
    Shared plumbing for enrichment collaborators that call HTTP APIs.

    The session is created lazily and re-created when the event loop
    changes.
    """

    name: str = "enricher"

    def __init__(self, config: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None):
        self.config = config or {}
        self.timeout = timeout or enrichment_settings.ENRICHMENT_TIMEOUT_SECONDS
        self.logger = logging.getLogger(self.__class__.__name__)

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()
        if (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        ):
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._session_loop = current_loop
        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            UpstreamError: connection failure, timeout or non-2xx status
        """
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise UpstreamError(
                        f"{self.name} upstream returned {response.status}: {text[:200]}",
                        status=response.status,
                    )
                return await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise UpstreamError(f"{self.name} upstream timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise UpstreamError(f"{self.name} upstream unreachable: {e}")
        except ValueError as e:
            raise UpstreamError(f"{self.name} upstream returned invalid JSON: {e}")
