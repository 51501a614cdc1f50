# ============================================================================
# src/medical_interpreter/core/config.py
# ============================================================================
"""
Centralized Configuration Management

Loads provider credentials and model defaults from environment variables
(.env file) with sensible defaults. Tunable thresholds live in the
``medical_interpreter.config`` settings package.

Usage:
    from medical_interpreter.core.config import get_config, Config

    # Get full config dict
    config = get_config()

    # Or use Config class for attribute access
    cfg = get_config_instance()
    print(cfg.groq_model)
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv


def _load_dotenv() -> bool:
    """Load .env file if it exists (never overrides real environment)."""
    # Project root first, then current working directory
    env_path = Path(__file__).parent.parent.parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
        return True

    cwd_env = Path.cwd() / '.env'
    if cwd_env.exists():
        load_dotenv(cwd_env)
        return True

    return False


def _get_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def _get_int(key: str, default: int = 0) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float = 0.0) -> float:
    """Get float from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(key: str, default: str = '') -> str:
    return os.getenv(key, default) or default


@dataclass
class Config:
    """
    Configuration container with attribute access.

    All values are loaded from environment variables with defaults.
    Credentials are kept verbatim; the provider registry decides whether
    they are usable.
    """

    # General
    environment: str = field(default_factory=lambda: _get_str('ENVIRONMENT', 'production'))
    log_level: str = field(default_factory=lambda: _get_str('LOG_LEVEL', 'INFO'))

    # Gemini (direct key or OpenRouter gateway key)
    gemini_api_key: str = field(default_factory=lambda: _get_str('GEMINI_API_KEY'))
    gemini_model: str = field(default_factory=lambda: _get_str('GEMINI_MODEL'))

    # Groq
    groq_api_key: str = field(default_factory=lambda: _get_str('GROQ_API_KEY'))
    groq_model: str = field(default_factory=lambda: _get_str('GROQ_MODEL', 'llama-3.3-70b-versatile'))

    # Hugging Face Inference API
    huggingface_api_key: str = field(default_factory=lambda: _get_str('HUGGINGFACE_API_KEY'))
    huggingface_model: str = field(default_factory=lambda: _get_str('HUGGINGFACE_MODEL', 'mistralai/Mistral-7B-Instruct-v0.2'))

    # OpenAI
    openai_api_key: str = field(default_factory=lambda: _get_str('OPENAI_API_KEY'))
    openai_model: str = field(default_factory=lambda: _get_str('OPENAI_MODEL', 'gpt-4o-mini'))

    # Perplexity (direct key or OpenRouter gateway key)
    perplexity_api_key: str = field(default_factory=lambda: _get_str('PERPLEXITY_API_KEY'))
    perplexity_model: str = field(default_factory=lambda: _get_str('PERPLEXITY_MODEL'))

    # Anthropic through OpenRouter (consensus second opinion)
    anthropic_api_key: str = field(
        default_factory=lambda: _get_str('ANTHROPIC_API_KEY') or _get_str('OPENROUTER_API_KEY')
    )
    anthropic_model: str = field(default_factory=lambda: _get_str('ANTHROPIC_MODEL', 'anthropic/claude-3.5-sonnet'))

    # Gateway attribution headers
    client_origin: str = field(default_factory=lambda: _get_str('CLIENT_ORIGIN', 'http://localhost:5173'))
    app_title: str = field(default_factory=lambda: _get_str('APP_TITLE', 'MedEase - Medical Report Analysis'))

    # Generation defaults
    temperature: float = field(default_factory=lambda: _get_float('TEMPERATURE', 0.2))
    max_tokens: int = field(default_factory=lambda: _get_int('MAX_TOKENS', 4000))
    provider_timeout: int = field(default_factory=lambda: _get_int('PROVIDER_TIMEOUT', 60))

    # Enrichment collaborators
    youtube_api_key: str = field(default_factory=lambda: _get_str('YOUTUBE_API_KEY'))
    drugbank_api_key: str = field(default_factory=lambda: _get_str('DRUGBANK_API_KEY'))
    specialist_region: str = field(default_factory=lambda: _get_str('SPECIALIST_REGION', 'India'))

    def __post_init__(self):
        _load_dotenv()

    @property
    def dev_mode(self) -> bool:
        return self.environment.lower() == 'development' or _get_bool('DEBUG', False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for passing to components."""
        return {
            # General
            'environment': self.environment,
            'log_level': self.log_level,
            'dev_mode': self.dev_mode,

            # Providers
            'gemini_api_key': self.gemini_api_key,
            'gemini_model': self.gemini_model,
            'groq_api_key': self.groq_api_key,
            'groq_model': self.groq_model,
            'huggingface_api_key': self.huggingface_api_key,
            'huggingface_model': self.huggingface_model,
            'openai_api_key': self.openai_api_key,
            'openai_model': self.openai_model,
            'perplexity_api_key': self.perplexity_api_key,
            'perplexity_model': self.perplexity_model,
            'anthropic_api_key': self.anthropic_api_key,
            'anthropic_model': self.anthropic_model,
            'client_origin': self.client_origin,
            'app_title': self.app_title,

            # Generation
            'temperature': self.temperature,
            'max_tokens': self.max_tokens,
            'provider_timeout': self.provider_timeout,

            # Enrichment
            'youtube_api_key': self.youtube_api_key,
            'drugbank_api_key': self.drugbank_api_key,
            'specialist_region': self.specialist_region,
        }


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Get configuration dictionary.

    Cached for performance - call once and pass to components.
    """
    _load_dotenv()
    return Config().to_dict()


def get_config_instance() -> Config:
    """Get Config instance for attribute access."""
    _load_dotenv()
    return Config()


def reload_config() -> Dict[str, Any]:
    """Reload configuration from environment (clears cache)."""
    get_config.cache_clear()
    return get_config()
