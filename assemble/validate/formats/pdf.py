"""
PDF content validation.

Checks for the PDF header before PyMuPDF parses the file. A missing
trailer or EOF marker is left to PyMuPDF, which repairs truncated files.
"""

import logging

from ..base_validator import BaseContentValidator, ValidationError

logger = logging.getLogger(__name__)

# The header may be preceded by junk bytes; readers scan the first kilobyte
HEADER_SEARCH_WINDOW = 1024


class PDFValidator(BaseContentValidator):
    """PDF content validator."""

    def __init__(self):
        super().__init__("pdf")

    def _validate_content(self, content: bytes, **options) -> bool:
        """
        Validate PDF file content.

        Args:
            content: PDF file content as bytes
            **options: Additional validation options

        Returns:
            bool: True if validation passes

        Raises:
            ValidationError: If validation fails
        """
        if b'%PDF-' not in content[:HEADER_SEARCH_WINDOW]:
            raise ValidationError(
                "Invalid PDF file: missing PDF header",
                format_type=self.format_name,
                details={"header_found": content[:10].hex()}
            )

        return True
