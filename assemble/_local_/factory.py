"""
Local conversion factory for the assembly pipeline.

This module provides the in-process strategies: appending the pages of a PDF
and placing a raster image on a fresh page. Both write into the accumulating
output document, which is a PyMuPDF ``Document``.
"""

import logging
from typing import Callable, Dict

import pymupdf

from ..config import (
    ConversionStrategy,
    IMAGE_MARGIN_RATIO,
    PAGE_HEIGHT,
    PAGE_WIDTH,
)
from ..utils.error_handling import DecodeError, PipelineError
from ..validate import validate_content

logger = logging.getLogger(__name__)


def fit_image_rect(
    image_width: float,
    image_height: float,
    page_width: float = PAGE_WIDTH,
    page_height: float = PAGE_HEIGHT,
    margin_ratio: float = IMAGE_MARGIN_RATIO
) -> pymupdf.Rect:
    """
    Compute where an image lands on the page.

    The margin is a fraction of the page width and applies to all four sides.
    The image is scaled, up or down, to fit the remaining box while keeping
    its aspect ratio, and centred on the page.

    Args:
        image_width: Image width in pixels
        image_height: Image height in pixels
        page_width: Page width in points
        page_height: Page height in points
        margin_ratio: Margin as a fraction of page width

    Returns:
        Target rectangle in page coordinates
    """
    if image_width <= 0 or image_height <= 0:
        raise DecodeError(f"Image has invalid dimensions {image_width}x{image_height}")

    margin = page_width * margin_ratio
    max_width = page_width - margin * 2
    max_height = page_height - margin * 2

    scale = min(max_width / image_width, max_height / image_height)
    width = image_width * scale
    height = image_height * scale

    x0 = page_width / 2 - width / 2
    y0 = page_height / 2 - height / 2
    return pymupdf.Rect(x0, y0, x0 + width, y0 + height)


class LocalConversionFactory:
    """
    Factory for local page production.

    Supports PDF (pages appended as-is) and PNG/JPEG (one centred image per
    page).
    """

    def __init__(self):
        """Initialize the conversion factory."""
        self._converters: Dict[ConversionStrategy, Callable[[pymupdf.Document, bytes, str, str], int]] = {
            ConversionStrategy.LOCAL_PDF: self._append_pdf,
            ConversionStrategy.LOCAL_IMAGE: self._append_image,
        }

    @staticmethod
    def create_accumulator() -> pymupdf.Document:
        """Create the empty output document a run accumulates into."""
        return pymupdf.open()

    @staticmethod
    def serialize(accumulator: pymupdf.Document) -> bytes:
        """Serialize the accumulated document to PDF bytes."""
        return accumulator.tobytes(garbage=3, deflate=True)

    def supports(self, strategy: ConversionStrategy) -> bool:
        return strategy in self._converters

    def append(
        self,
        accumulator: pymupdf.Document,
        content: bytes,
        filename: str,
        input_format: str,
        strategy: ConversionStrategy
    ) -> int:
        """
        Append the pages produced from ``content`` to the accumulator.

        Args:
            accumulator: Output document being built
            content: Raw bytes of the input file
            filename: Original filename, used in messages
            input_format: Input extension (e.g. 'pdf', 'png')
            strategy: Local strategy resolved for the file

        Returns:
            Number of pages appended

        Raises:
            DecodeError: If the content cannot be decoded
            ValueError: If the strategy is not a local one
        """
        converter = self._converters.get(strategy)
        if converter is None:
            raise ValueError(f"Strategy {strategy.value} is not handled locally")

        try:
            return converter(accumulator, content, filename, input_format)
        except PipelineError:
            raise
        except Exception as e:
            logger.error(f"Local conversion error for {filename}: {e}")
            raise DecodeError(f"Failed to read {filename}: {e}") from e

    def append_pdf_bytes(self, accumulator: pymupdf.Document, content: bytes, filename: str) -> int:
        """Append a PDF produced elsewhere (e.g. by the remote service)."""
        return self.append(accumulator, content, filename, "pdf", ConversionStrategy.LOCAL_PDF)

    def _append_pdf(self, accumulator: pymupdf.Document, content: bytes, filename: str, input_format: str) -> int:
        validate_content(content, "pdf")

        with pymupdf.open(stream=content, filetype="pdf") as source:
            if source.needs_pass:
                raise DecodeError(f"{filename} is password protected")
            page_count = source.page_count
            if page_count == 0:
                raise DecodeError(f"{filename} contains no pages")
            accumulator.insert_pdf(source)

        logger.debug(f"Appended {page_count} page(s) from {filename}")
        return page_count

    def _append_image(self, accumulator: pymupdf.Document, content: bytes, filename: str, input_format: str) -> int:
        validate_content(content, input_format)

        pixmap = pymupdf.Pixmap(content)
        rect = fit_image_rect(pixmap.width, pixmap.height)

        page = accumulator.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        page.insert_image(rect, stream=content, keep_proportion=True)

        logger.debug(f"Placed {filename} at {tuple(round(v, 2) for v in rect)}")
        return 1
