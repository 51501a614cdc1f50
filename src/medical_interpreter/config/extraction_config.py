# ============================================================================
# src/medical_interpreter/config/extraction_config.py
# ============================================================================
"""
Lab-Value Extraction Settings
- Line filtering and buffer flush ceiling
- Reference-range enrichment call
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ExtractionSettings(BaseSettings):
    BUFFER_LINE_CEILING: int = Field(
        default=180,
        ge=20,
        description="Buffered multi-line rows are flushed once longer than this many characters"
    )
    MIN_LINE_LENGTH: int = Field(
        default=4,
        ge=1,
        description="Normalized lines shorter than this are dropped"
    )
    REFERENCE_RANGE_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Temperature for the reference-range lookup call"
    )
    REFERENCE_RANGE_MAX_TOKENS: int = Field(
        default=2000,
        ge=1,
        description="Maximum output tokens for the reference-range lookup call"
    )
    RANGE_TOKEN_OVERLAP: float = Field(
        default=0.6,
        ge=0.0, le=1.0,
        description="Share of the shorter test name's words that must match for a fuzzy range match"
    )


extraction_settings = ExtractionSettings()
