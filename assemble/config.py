"""
Assembly configuration for the /pipeline endpoints.

This module defines the supported input formats, the handling strategy for
each of them, the remote conversion service endpoints and the page geometry
used when placing images.
"""

import os
from pathlib import Path
from typing import Dict, Tuple
from enum import Enum


class ConversionStrategy(Enum):
    """How a queue item is turned into PDF pages."""
    LOCAL_PDF = "local-pdf"
    LOCAL_IMAGE = "local-image"
    REMOTE_DOCUMENT = "remote-document"
    UNSUPPORTED = "unsupported"


# Extension -> (strategy, description)
FORMAT_STRATEGIES: Dict[str, Tuple[ConversionStrategy, str]] = {
    "pdf": (ConversionStrategy.LOCAL_PDF, "Append all pages directly"),

    "jpg": (ConversionStrategy.LOCAL_IMAGE, "Place JPEG centered on a new page"),
    "jpeg": (ConversionStrategy.LOCAL_IMAGE, "Place JPEG centered on a new page"),
    "png": (ConversionStrategy.LOCAL_IMAGE, "Place PNG centered on a new page"),

    "docx": (ConversionStrategy.REMOTE_DOCUMENT, "Word to PDF via ConvertAPI"),
    "xlsx": (ConversionStrategy.REMOTE_DOCUMENT, "Excel to PDF via ConvertAPI"),
    "pptx": (ConversionStrategy.REMOTE_DOCUMENT, "PowerPoint to PDF via ConvertAPI"),
    "txt": (ConversionStrategy.REMOTE_DOCUMENT, "Plain text to PDF via ConvertAPI"),
}


# Remote conversion service (ConvertAPI REST)
CONVERT_API_BASE_URL = os.getenv("ASSEMBLE_CONVERTAPI_URL", "https://v2.convertapi.com").rstrip("/")
CONVERT_TO_PDF_PATH = "/convert/{input_format}/to/pdf"
COMPRESS_PDF_PATH = "/convert/pdf/to/compress"
COMPRESSED_UPLOAD_NAME = "merged.pdf"

# Upload body is streamed in chunks of this size so progress can be reported
UPLOAD_CHUNK_SIZE = int(os.getenv("ASSEMBLE_UPLOAD_CHUNK_SIZE", str(64 * 1024)))


# Credentials
CONVERT_API_SERVICE = "convertapi"
CREDENTIAL_ENV_FALLBACKS: Dict[str, str] = {
    CONVERT_API_SERVICE: "CONVERT_API_KEY",
}
DEFAULT_SETTINGS_FILE = Path.home() / ".config" / "assemble" / "settings.json"


def get_settings_file() -> Path:
    """Return the local preference file holding service credentials."""
    configured = os.getenv("ASSEMBLE_SETTINGS_FILE", "").strip()
    if configured:
        return Path(configured).expanduser()
    return DEFAULT_SETTINGS_FILE


# Page geometry for image placement (A4 in PDF points)
PAGE_WIDTH = 595.28
PAGE_HEIGHT = 841.89
IMAGE_MARGIN_RATIO = 0.1

# Output artifact
OUTPUT_FILENAME = "merged.pdf"
OUTPUT_MEDIA_TYPE = "application/pdf"
