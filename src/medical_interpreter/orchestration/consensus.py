# ============================================================================
# src/medical_interpreter/orchestration/consensus.py
# ============================================================================
"""
Consensus Orchestrator

Fans the same prompt out to the consensus roster concurrently and
synthesizes one answer from whichever providers succeed.

Synthesis (responses always re-sorted by priority first):
- one response: returned verbatim (strategy "single")
- JSON section: per top-level key vote over parsed objects; sequences
  become the de-duplicated union of every provider's items
- free text: highest-priority content, annotated with its corroborators
  (strategy "validated")
- nothing parses as JSON: highest-priority raw content (strategy "fallback")
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import orchestration_settings
from ..core.context import ConsensusStrategy, SectionType
from ..providers.base import CallOptions, Message, extract_json_object
from ..providers.registry import ProviderRegistry
from ..utils.exceptions import InsufficientProviders, NoProvidersConfigured
from .fallback import FallbackOrchestrator, GenerationResult


@dataclass
class ConsensusResult:
    """Synthesized answer plus attribution."""
    content: str
    strategy: ConsensusStrategy
    providers: List[str] = field(default_factory=list)
    models: List[str] = field(default_factory=list)
    parsed_value: Optional[Dict[str, Any]] = None
    agreement_count: int = 0
    note: str = ""

    @property
    def validated_by(self) -> int:
        return len(self.providers)

    @property
    def is_validated(self) -> bool:
        return self.validated_by > 1


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def union_sequences(sequences: Sequence[Sequence[Any]]) -> List[Any]:
    """Union of items, structural de-duplication, first-seen order."""
    seen = set()
    merged: List[Any] = []
    for sequence in sequences:
        for item in sequence:
            marker = _serialize(item)
            if marker in seen:
                continue
            seen.add(marker)
            merged.append(item)
    return merged


def vote(objects: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Merge parsed JSON objects, listed in provider priority order.

    For each key the most common serialized value wins, ties going to the
    earliest (highest-priority) provider. A winner needs two votes or the
    agreement of every provider that supplied the key; otherwise the
    highest-priority provider's value stands.
    """
    keys: List[str] = []
    for obj in objects:
        for key in obj:
            if key not in keys:
                keys.append(key)

    merged: Dict[str, Any] = {}
    for key in keys:
        values = [obj[key] for obj in objects if key in obj]

        tally: Dict[str, List[Any]] = {}  # serialized -> [count, first_index, value]
        for index, value in enumerate(values):
            marker = _serialize(value)
            if marker in tally:
                tally[marker][0] += 1
            else:
                tally[marker] = [1, index, value]

        count, _, top_value = min(tally.values(), key=lambda entry: (-entry[0], entry[1]))
        winner = top_value if count >= 2 or count == len(values) else values[0]

        if isinstance(winner, list):
            winner = union_sequences([v for v in values if isinstance(v, list)])
        merged[key] = winner
    return merged


def synthesize(
    responses: Sequence[GenerationResult],
    section_type: SectionType = SectionType.JSON,
    parse: Callable[[str], Optional[Dict[str, Any]]] = extract_json_object,
) -> ConsensusResult:
    """
    Pure synthesis over successful responses.

    Raises:
        InsufficientProviders: ``responses`` is empty
    """
    if not responses:
        raise InsufficientProviders(0, 1)

    ordered = sorted(responses, key=lambda r: r.priority)
    providers = [r.provider for r in ordered]
    models = [r.model for r in ordered]
    primary = ordered[0]

    if len(ordered) == 1:
        return ConsensusResult(
            content=primary.content,
            strategy=ConsensusStrategy.SINGLE,
            providers=providers,
            models=models,
            agreement_count=1,
        )

    if section_type is SectionType.TEXT:
        return ConsensusResult(
            content=primary.content,
            strategy=ConsensusStrategy.VALIDATED,
            providers=providers,
            models=models,
            agreement_count=len(ordered),
            note=f"Validated by {len(ordered)} providers: {', '.join(providers)}",
        )

    parsed = [obj for obj in (parse(r.content) for r in ordered) if obj is not None]
    if not parsed:
        return ConsensusResult(
            content=primary.content,
            strategy=ConsensusStrategy.FALLBACK,
            providers=providers,
            models=models,
            agreement_count=0,
            note="No response contained a JSON object",
        )

    merged = vote(parsed)
    return ConsensusResult(
        content=json.dumps(merged, indent=2),
        strategy=ConsensusStrategy.MULTI_PROVIDER if len(parsed) > 1 else ConsensusStrategy.SINGLE,
        providers=providers,
        models=models,
        parsed_value=merged,
        agreement_count=len(parsed),
    )


class ConsensusOrchestrator:
    """
    Concurrent multi-provider fan-out.

    Each roster member runs through the fallback chain restricted to that
    one descriptor, bounded by its own timeout. One slow or failing member
    never blocks collection of the others.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        fallback: Optional[FallbackOrchestrator] = None,
        timeout: Optional[float] = None,
    ):
        self.registry = registry or ProviderRegistry()
        self.fallback = fallback or FallbackOrchestrator(registry=self.registry)
        self.timeout = timeout or orchestration_settings.CONSENSUS_TIMEOUT_SECONDS
        self.logger = logging.getLogger(self.__class__.__name__)

    async def consensus(
        self,
        messages: List[Message],
        system_prompt: Optional[str] = None,
        options: Optional[CallOptions] = None,
        section_type: SectionType = SectionType.JSON,
        min_providers: int = 1,
    ) -> ConsensusResult:
        """
        Query the roster concurrently and synthesize.

        Raises:
            NoProvidersConfigured: the roster is empty
            InsufficientProviders: fewer than ``min_providers`` succeeded
        """
        options = options or CallOptions()
        roster = self.registry.consensus_providers()
        if not roster:
            raise NoProvidersConfigured("No consensus providers configured")

        self.logger.info(
            f"Consensus across {len(roster)} provider(s): "
            f"{', '.join(f'{d.name.value}:{d.model}' for d in roster)}"
        )

        # Roster members keep their own model
        member_options = replace(options, model=None)

        async def _ask(descriptor) -> GenerationResult:
            return await asyncio.wait_for(
                self.fallback.generate(messages, system_prompt, member_options, providers=[descriptor]),
                timeout=self.timeout,
            )

        outcomes = await asyncio.gather(*(_ask(d) for d in roster), return_exceptions=True)

        successes: List[GenerationResult] = []
        for descriptor, outcome in zip(roster, outcomes):
            if isinstance(outcome, GenerationResult):
                successes.append(outcome)
            elif isinstance(outcome, asyncio.TimeoutError):
                self.logger.warning(f"{descriptor.name.value} timed out after {self.timeout}s")
            elif isinstance(outcome, Exception):
                self.logger.warning(f"{descriptor.name.value} failed: {str(outcome)[:200]}")
            else:
                raise outcome

        required = max(1, min_providers)
        if len(successes) < required:
            raise InsufficientProviders(len(successes), required)

        result = synthesize(successes, section_type)
        self.logger.info(
            f"Consensus strategy={result.strategy.value} from {result.validated_by} provider(s)"
        )
        return result
