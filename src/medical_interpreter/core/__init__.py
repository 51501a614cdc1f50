# ============================================================================
# src/medical_interpreter/core/__init__.py
# ============================================================================
"""
Core configuration and data model
"""

from .config import Config, get_config, get_config_instance, reload_config
from .context import ConsensusStrategy, Finding, Flag, SectionType, Severity

__all__ = [
    "Config",
    "get_config",
    "get_config_instance",
    "reload_config",
    "ConsensusStrategy",
    "Finding",
    "Flag",
    "SectionType",
    "Severity",
]
