# ============================================================================
# src/medical_interpreter/config/orchestration_config.py
# ============================================================================
"""
Provider Orchestration Settings
- Consensus fan-out timeout and quorum
- Interpretation generation parameters
- Fallback-chain preference when consensus is exhausted
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class OrchestrationSettings(BaseSettings):
    CONSENSUS_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Per-provider timeout inside a consensus fan-out"
    )
    CONSENSUS_MIN_PROVIDERS: int = Field(
        default=1,
        ge=1,
        description="Successful providers required before a consensus is synthesized"
    )
    INTERPRET_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Sampling temperature for report interpretation"
    )
    INTERPRET_MAX_TOKENS: int = Field(
        default=4000,
        ge=1,
        description="Maximum output tokens for report interpretation"
    )
    FALLBACK_PREFERRED_PROVIDERS: List[str] = Field(
        default_factory=lambda: ["openrouter", "groq"],
        description="Provider order for the single-provider fallback after consensus fails"
    )


orchestration_settings = OrchestrationSettings()
