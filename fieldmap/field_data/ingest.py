"""
Discovery and loading of field images from disk.
"""

import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import List, Union

from fieldmap.field_data.models import ImageAsset, IngestedAsset

logger = logging.getLogger(__name__)


IMAGE_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.heic', '.heif', '.tif', '.tiff', '.webp',
}

# mimetypes has no entry for HEIC/HEIF on most platforms
_EXTRA_MIME_TYPES = {
    '.heic': 'image/heic',
    '.heif': 'image/heif',
    '.webp': 'image/webp',
}


def guess_mime_type(path: Union[str, Path]) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in _EXTRA_MIME_TYPES:
        return _EXTRA_MIME_TYPES[suffix]
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or 'application/octet-stream'


def discover_images(directory: Union[str, Path], recursive: bool = True) -> List[Path]:
    """
    Find image files under a directory by extension.

    Args:
        directory: Directory to search
        recursive: Whether to search subdirectories

    Returns:
        Sorted list of image paths

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Input directory not found: {directory}")

    pattern = directory.rglob('*') if recursive else directory.glob('*')
    paths = sorted(
        p for p in pattern
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )
    logger.info(f"Found {len(paths)} images in {directory}")
    return paths


def load_asset(path: Union[str, Path]) -> IngestedAsset:
    """Read one image file into an IngestedAsset."""
    path = Path(path)
    content = path.read_bytes()
    stat = path.stat()

    asset = ImageAsset(
        file_name=path.name,
        file_size_bytes=len(content),
        mime_type=guess_mime_type(path),
        last_modified=datetime.fromtimestamp(stat.st_mtime),
    )
    return IngestedAsset(asset=asset, content=content, source_path=path)


def load_assets(directory: Union[str, Path], recursive: bool = True) -> List[IngestedAsset]:
    """Discover and load every image under a directory."""
    return [load_asset(path) for path in discover_images(directory, recursive)]
