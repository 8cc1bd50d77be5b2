"""
Base exporter interface.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from fieldmap.config import section


class BaseExporter(ABC):
    """
    Abstract base class for field data exporters.

    Config-only constructor - reads from config['export'].
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize exporter with configuration.

        Args:
            config: Full configuration dictionary
        """
        self._config = config or {}
        exp = section(config, 'export')

        self._project_name = exp['project_name']
        self._analyst = exp['analyst']
        self._include_originals = exp['include_originals']
        self._include_thumbnails = exp['include_thumbnails']
        self._archive_name = exp['archive_name']

    @abstractmethod
    def export(self, *args, **kwargs) -> Path:
        """
        Export to the output location.

        Returns:
            Path to exported output
        """
        pass
