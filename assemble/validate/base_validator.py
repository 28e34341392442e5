"""
Base content validator classes for locally processed formats.

Validators inspect the raw bytes of a queue item before it is handed to
PyMuPDF, so a corrupt or mislabelled file fails with a descriptive decode
error that names the format.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Any, Dict

from ..utils.error_handling import DecodeError

logger = logging.getLogger(__name__)

# Local processing loads the whole document in memory
MAX_LOCAL_CONTENT_SIZE = 200 * 1024 * 1024


class ValidationError(DecodeError):
    """Raised when content validation fails."""

    def __init__(self, message: str, format_type: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.format_type = format_type


class BaseContentValidator(ABC):
    """
    Base class for content validators.

    Subclasses implement ``_validate_content``; the common size checks run
    first.
    """

    def __init__(self, format_name: str):
        self.format_name = format_name
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def validate(self, content: bytes, **options) -> bool:
        """
        Validate raw content for this format.

        Args:
            content: Raw file bytes
            **options: Format-specific validation options

        Returns:
            bool: True if validation passes

        Raises:
            ValidationError: If validation fails
        """
        self._validate_basic_binary_content(content)
        return self._validate_content(content, **options)

    def _validate_basic_binary_content(self, content: bytes) -> None:
        if len(content) == 0:
            raise ValidationError(
                "File is empty",
                format_type=self.format_name,
                details={"content_length": 0}
            )

        if len(content) > MAX_LOCAL_CONTENT_SIZE:
            raise ValidationError(
                "File is too large for local processing",
                format_type=self.format_name,
                details={"content_length": len(content)}
            )

    @abstractmethod
    def _validate_content(self, content: bytes, **options) -> bool:
        """
        Perform format-specific content validation.

        Raises:
            ValidationError: If the bytes do not look like this format
        """


def create_validator_for_format(format_name: str) -> BaseContentValidator:
    """
    Factory function to create the validator for a local format.

    Args:
        format_name: The format extension (pdf, png, jpg, jpeg)

    Returns:
        Appropriate validator instance

    Raises:
        ValueError: If format has no local validator
    """
    from .formats import image, pdf

    format_validators = {
        'pdf': lambda: pdf.PDFValidator(),
        'png': lambda: image.PNGValidator(),
        'jpg': lambda: image.JPEGValidator(),
        'jpeg': lambda: image.JPEGValidator(),
    }

    validator_factory = format_validators.get(format_name.lower())
    if not validator_factory:
        raise ValueError(f"Unsupported format: {format_name}")

    return validator_factory()
