"""
Format-specific validators for locally processed content.
"""

from . import image, pdf

__all__ = ['image', 'pdf']
