"""
Document assembly endpoints for the pipeline service.

This package merges an ordered queue of PDFs, images and office documents
into a single PDF, delegating office formats and the optional compression
pass to a remote conversion service.
"""

__version__ = "1.0.0"
