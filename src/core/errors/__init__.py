"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    PipelineError,
    AuthError,
    TransientError,
    PermanentError,
    # Transient errors
    ConnectionError,
    TimeoutError,
    # Permanent errors
    ValidationError,
    ConfigurationError,
    # Classification utilities
    classify_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "AuthError",
    "TransientError",
    "PermanentError",
    # Transient errors
    "ConnectionError",
    "TimeoutError",
    # Permanent errors
    "ValidationError",
    "ConfigurationError",
    # Classification utilities
    "classify_exception",
]
