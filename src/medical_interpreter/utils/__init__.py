# ============================================================================
# src/medical_interpreter/utils/__init__.py
# ============================================================================
"""
Utility modules for the medical report interpreter.
"""

from .exceptions import (
    ErrorKind,
    InterpreterError,
    ConfigurationError,
    NoProvidersConfigured,
    TransportError,
    ResponseParseError,
    ExhaustionError,
    AllProvidersFailed,
    InsufficientProviders,
    classify_failure,
)

from .logging import (
    setup_logging,
    get_logger,
    JsonFormatter,
    LogContext,
    log_performance,
)

from .text_normalizer import (
    NormalizedLine,
    collapse_whitespace,
    normalize_lines,
    normalize_test_key,
)

__all__ = [
    # Exceptions
    'ErrorKind',
    'InterpreterError',
    'ConfigurationError',
    'NoProvidersConfigured',
    'TransportError',
    'ResponseParseError',
    'ExhaustionError',
    'AllProvidersFailed',
    'InsufficientProviders',
    'classify_failure',
    # Logging
    'setup_logging',
    'get_logger',
    'JsonFormatter',
    'LogContext',
    'log_performance',
    # Text
    'NormalizedLine',
    'collapse_whitespace',
    'normalize_lines',
    'normalize_test_key',
]
