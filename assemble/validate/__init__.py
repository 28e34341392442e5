"""
Content validation module for locally processed formats.

This module checks raw bytes before they reach the PDF engine, ensuring
corrupt or mislabelled files fail with a clear decode error.
"""

import logging
from typing import Dict

from .base_validator import BaseContentValidator, ValidationError, create_validator_for_format

logger = logging.getLogger(__name__)

# Validators are stateless; one instance per format is enough
_validators: Dict[str, BaseContentValidator] = {}


def get_validator(format_name: str) -> BaseContentValidator:
    """Get the shared validator for a format."""
    key = format_name.lower()
    if key not in _validators:
        _validators[key] = create_validator_for_format(key)
    return _validators[key]


def validate_content(content: bytes, expected_format: str, **options) -> bool:
    """
    Convenience function to validate content.

    Args:
        content: Raw file bytes
        expected_format: Expected format extension
        **options: Additional validation options

    Returns:
        bool: True if validation passes

    Raises:
        ValidationError: If validation fails
        ValueError: If format is not supported
    """
    return get_validator(expected_format).validate(content, **options)


__all__ = ['ValidationError', 'get_validator', 'validate_content']
