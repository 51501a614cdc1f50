# ============================================================================
# src/medical_interpreter/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .orchestration_config import orchestration_settings
from .extraction_config import extraction_settings
from .enrichment_config import enrichment_settings
from .logging_config import logging_settings
