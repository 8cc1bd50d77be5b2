"""
Configuration for fieldmap.

Later layers win:
1. Hardcoded DEFAULT_CONFIG
2. configs/global_config.yaml (through the GlobalConfig singleton)
3. Config files and dicts passed to ``load_config``
4. CLI flags, merged by the caller

Capabilities and exporters get the resulting plain dict at construction and
read their own section with ``section``; nothing reaches for the singleton
after ``load_config``, so engines built side by side keep separate settings.

Example:
    >>> config = load_config('site.yaml', {'clustering': {'radius_m': 50}})
    >>> section(config, 'clustering')['radius_m']
    50
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'output_dir': 'outputs/',
    'log_dir': 'logs/',
    'validation': {
        'max_file_size_mb': 50,
        'min_file_size_bytes': 1024,
        'allowed_mime_types': [
            'image/jpeg',
            'image/jpg',
            'image/png',
            'image/heic',
            'image/heif',
            'image/tiff',
            'image/webp',
        ],
    },
    'quality': {
        'min_megapixels': 2.0,
        'min_compression_ratio': 0.1,
    },
    'extraction': {
        'enable_location_fallback': False,
        'generate_thumbnails': True,
        'thumbnail_size': 150,
        'thumbnail_quality': 80,
    },
    'clustering': {
        'enabled': True,
        'radius_m': 100.0,
    },
    'export': {
        'project_name': 'Unnamed Project',
        'analyst': 'fieldmap',
        'color_scheme': 'quality',
        'include_originals': True,
        'include_thumbnails': True,
        'enable_tour': False,
        'tour_length': 10,
        'archive_name': 'field_export.kmz',
    },
    'evidence': {
        'enabled': False,
        'analyst': 'system',
    },
    'orchestration': {
        'max_workers': 8,
        'task_timeout_sec': None,
    },
    'logging': {
        'level': 'INFO',
        'log_to_file': False,
        'log_to_console': True,
    },
}


class GlobalConfig:
    """
    Process-wide configuration: the hardcoded defaults with
    configs/global_config.yaml merged on top.

    ``load_config`` starts every component config from this instance.
    """

    _instance: Optional['GlobalConfig'] = None
    _config: Dict[str, Any] = {}
    _loaded: bool = False

    def __new__(cls) -> 'GlobalConfig':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._loaded:
            self._load_config()
            self._loaded = True

    def _load_config(self) -> None:
        config_path = Path(__file__).resolve().parent.parent / 'configs' / 'global_config.yaml'
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if not config_path.exists():
            logger.debug(f"No global config at {config_path}; using defaults")
            return

        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable global config {config_path}: {e}")
            return

        _deep_merge_dicts(self._config, loaded)
        logger.debug(f"Loaded global config from {config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Value at a dotted key, or ``default``.

        Example:
            >>> config.get('validation.max_file_size_mb', 50)
        """
        value = self._config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def reload(self) -> None:
        """Re-read configs/global_config.yaml."""
        self._load_config()
        self._loaded = True

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy of the full configuration."""
        return copy.deepcopy(self._config)


_global_config_instance: Optional[GlobalConfig] = None


def get_global_config() -> GlobalConfig:
    """The process-wide GlobalConfig."""
    global _global_config_instance
    if _global_config_instance is None:
        _global_config_instance = GlobalConfig()
    return _global_config_instance


def load_config(*sources: Union[Dict, Path, str, None]) -> Dict[str, Any]:
    """
    Build a component config dict: the global config, then each source in order.

    Args:
        *sources: Config dicts or YAML file paths. Later sources override
            earlier ones. ``None`` entries are skipped.

    Returns:
        New configuration dictionary
    """
    merged = get_global_config().to_dict()

    for source in sources:
        if source is None:
            continue
        if isinstance(source, (Path, str)):
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Configuration file not found: {path}")
            with open(path, 'r') as f:
                source = yaml.safe_load(f) or {}
            if not isinstance(source, dict):
                raise ValueError(f"Configuration file must contain a mapping: {path}")
        elif not isinstance(source, dict):
            raise TypeError(f"Config must be dict or Path, got {type(source)}")

        _deep_merge_dicts(merged, source)

    return merged


def section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """Return a config section merged over its defaults."""
    return deep_merge(DEFAULT_CONFIG.get(name, {}), (config or {}).get(name, {}))


def _deep_merge_dicts(base: Dict, updates: Dict) -> None:
    """Helper for deep dictionary merge (in-place)."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge_dicts(base[key], value)
        else:
            base[key] = value


def deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, returning a new dictionary.

    Example:
        >>> deep_merge({'a': 1, 'n': {'b': 2}}, {'n': {'c': 3}})
        {'a': 1, 'n': {'b': 2, 'c': 3}}
    """
    result = copy.deepcopy(base)
    _deep_merge_dicts(result, updates)
    return result


__all__ = [
    'DEFAULT_CONFIG',
    'GlobalConfig',
    'get_global_config',
    'load_config',
    'section',
    'deep_merge',
]
