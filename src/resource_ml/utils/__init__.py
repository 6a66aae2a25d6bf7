"""
Utils Package
=============
Utility functions for the resource analysis engine.

Modules:
- logger: Centralized logging configuration
- constants: Thresholds, vocabularies and default configurations
- validators: Record coercion and validation results
"""

from .logger import get_logger, LogContext
from .validators import RecordValidator, ValidationResult, parse_timestamp

__all__ = [
    'get_logger',
    'LogContext',
    'RecordValidator',
    'ValidationResult',
    'parse_timestamp',
]
