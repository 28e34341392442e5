"""
Local conversion module for the assembly pipeline.

This module contains the conversions that run in-process with PyMuPDF and
never require the remote conversion service.
"""

from .factory import LocalConversionFactory, fit_image_rect

__all__ = ['LocalConversionFactory', 'fit_image_rect']
