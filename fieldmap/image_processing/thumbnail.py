"""
In-memory thumbnail generation for field images.

Thumbnails are small JPEG previews embedded in export archives next to the
originals.
"""

import io
import logging
from typing import Any, Dict, Optional

from PIL import Image, ImageOps

from fieldmap.config import section


logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    """
    JPEG thumbnail generator working on raw image bytes.

    Example:
        >>> generator = ThumbnailGenerator({'extraction': {'thumbnail_size': 150}})
        >>> jpeg_bytes = generator.generate(raw_bytes)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize thumbnail generator.

        Args:
            config: Configuration dict; reads ``extraction.thumbnail_size``
                (longest edge in pixels) and ``extraction.thumbnail_quality``
        """
        settings = section(config, 'extraction')
        self.max_size = int(settings['thumbnail_size'])
        self.quality = int(settings['thumbnail_quality'])

        logger.debug(
            f"ThumbnailGenerator initialized: max_size={self.max_size}, "
            f"quality={self.quality}"
        )

    def generate(self, content: bytes) -> bytes:
        """
        Generate a thumbnail from encoded image bytes.

        Args:
            content: Encoded image (any format Pillow can decode)

        Returns:
            JPEG-encoded thumbnail bytes

        Raises:
            PIL.UnidentifiedImageError: If the content cannot be decoded
        """
        with Image.open(io.BytesIO(content)) as img:
            # Apply EXIF orientation if present (fixes rotation issues)
            img = ImageOps.exif_transpose(img)

            # JPEG has no alpha channel
            if img.mode in ('RGBA', 'LA', 'P'):
                rgb_img = Image.new('RGB', img.size, (255, 255, 255))
                if img.mode == 'P':
                    img = img.convert('RGBA')
                rgb_img.paste(img, mask=img.split()[-1])
                img = rgb_img
            elif img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')

            img.thumbnail((self.max_size, self.max_size), Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format='JPEG', quality=self.quality)

        return buffer.getvalue()
