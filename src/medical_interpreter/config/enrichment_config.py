# ============================================================================
# src/medical_interpreter/config/enrichment_config.py
# ============================================================================
"""
Enrichment Settings
- Medication lookups and the shared memo cache
- Video and specialist lookups
- Global statistics and patient impact
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class EnrichmentSettings(BaseSettings):
    MEDICATION_LOOKUP_LIMIT: int = Field(
        default=5,
        ge=0,
        description="Maximum distinct medications looked up per report"
    )
    MEMO_CACHE_MAX_SIZE: int = Field(
        default=1000,
        ge=1,
        description="Entries kept in the drug lookup memo cache before LRU eviction"
    )
    MEMO_CACHE_TTL: Optional[int] = Field(
        default=None,
        description="Memo cache entry lifetime in seconds (None = process lifetime)"
    )
    VIDEO_RESULT_LIMIT: int = Field(
        default=3,
        ge=1,
        description="Video resources attached to a report"
    )
    ENRICHMENT_TIMEOUT_SECONDS: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for each outbound enrichment request"
    )
    STATISTICS_PREFERRED_PROVIDERS: List[str] = Field(
        default_factory=lambda: ["perplexity", "huggingface", "openai", "gemini"],
        description="Provider order for global statistics (online-search models first)"
    )
    STATISTICS_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Sampling temperature for global statistics"
    )
    STATISTICS_MAX_TOKENS: int = Field(
        default=4000,
        ge=1,
        description="Maximum output tokens for global statistics"
    )


enrichment_settings = EnrichmentSettings()
