"""
Per-asset file validation.

Validation runs before extraction and is independent per asset: a rejected
file produces one error string and never aborts the rest of the batch.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from fieldmap.config import section
from fieldmap.field_data.models import ImageAsset
from fieldmap.field_data.report import format_file_size

logger = logging.getLogger(__name__)


class AssetValidator:
    """
    Checks MIME type and size limits of submitted assets.

    Reads the ``validation`` config section:
        allowed_mime_types: allow-list of MIME types
        max_file_size_mb: upper size bound (inclusive)
        min_file_size_bytes: lower size bound (inclusive)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        settings = section(config, 'validation')
        self.allowed_mime_types = {m.lower() for m in settings['allowed_mime_types']}
        self.max_bytes = int(settings['max_file_size_mb'] * 1024 * 1024)
        self.max_label = f"{settings['max_file_size_mb']}MB"
        self.min_bytes = int(settings['min_file_size_bytes'])

    def validate(self, asset: ImageAsset) -> Optional[str]:
        """
        Validate one asset.

        Returns:
            Error string "<file>: <reason>", or None when the asset is valid
        """
        if asset.mime_type.lower() not in self.allowed_mime_types:
            return f"{asset.file_name}: Unsupported file type ({asset.mime_type})"

        if asset.file_size_bytes > self.max_bytes:
            return (
                f"{asset.file_name}: File too large "
                f"({format_file_size(asset.file_size_bytes)}, max {self.max_label})"
            )

        if asset.file_size_bytes < self.min_bytes:
            return (
                f"{asset.file_name}: File too small "
                f"({format_file_size(asset.file_size_bytes)}, "
                f"min {format_file_size(self.min_bytes)})"
            )

        return None

    def partition(self, assets: List[Any]) -> Tuple[List[Any], List[str]]:
        """
        Split items into valid ones and error strings.

        Items are ImageAssets or objects with an ``asset`` attribute.
        """
        valid, errors = [], []
        for item in assets:
            asset = getattr(item, 'asset', item)
            error = self.validate(asset)
            if error:
                logger.warning(f"Rejected {error}")
                errors.append(error)
            else:
                valid.append(item)
        return valid, errors
