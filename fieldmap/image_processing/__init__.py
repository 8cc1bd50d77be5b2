"""
Image processing utilities.
"""

from fieldmap.image_processing.thumbnail import ThumbnailGenerator

__all__ = ['ThumbnailGenerator']
