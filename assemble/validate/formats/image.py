"""
Raster image content validation.

Validates that PNG and JPEG payloads carry the signature their extension
promises, so a renamed file is reported instead of silently decoded.
"""

import logging

from ..base_validator import BaseContentValidator, ValidationError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
JPEG_SIGNATURE = b'\xff\xd8\xff'


class SignatureValidator(BaseContentValidator):
    """Validator that only checks the leading magic bytes."""

    signature = b''
    label = ''

    def _validate_content(self, content: bytes, **options) -> bool:
        if not content.startswith(self.signature):
            raise ValidationError(
                f"Invalid {self.label} file: missing {self.label} signature",
                format_type=self.format_name,
                details={"header_found": content[:8].hex()}
            )
        return True


class PNGValidator(SignatureValidator):
    signature = PNG_SIGNATURE
    label = "PNG"

    def __init__(self):
        super().__init__("png")


class JPEGValidator(SignatureValidator):
    signature = JPEG_SIGNATURE
    label = "JPEG"

    def __init__(self):
        super().__init__("jpeg")
