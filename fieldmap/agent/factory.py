"""
Factory for creating configured capability registries and engines.

Handles initialization of all capabilities with proper dependency injection.
"""

from typing import Any, Dict, Optional
import logging

from fieldmap.agent.core.engine import OrchestrationEngine
from fieldmap.agent.tools.clustering_tools import GeoClusteringAgent
from fieldmap.agent.tools.evidence_tools import EvidenceChainAgent
from fieldmap.agent.tools.export_tools import ExportAgent
from fieldmap.agent.tools.metadata_tools import MetadataExtractionAgent
from fieldmap.agent.tools.registry import CapabilityRegistry

logger = logging.getLogger(__name__)


DEFAULT_CAPABILITIES = (
    MetadataExtractionAgent,
    GeoClusteringAgent,
    EvidenceChainAgent,
    ExportAgent,
)


def create_default_registry(config: Optional[Dict[str, Any]] = None) -> CapabilityRegistry:
    """
    Registry with the four field processing capabilities.

    Args:
        config: Configuration dict passed to every capability

    Returns:
        New CapabilityRegistry
    """
    registry = CapabilityRegistry()
    for capability_class in DEFAULT_CAPABILITIES:
        registry.register(capability_class(config))

    logger.info(f"Created registry with {len(registry)} capabilities")
    return registry


def create_engine(
    config: Optional[Dict[str, Any]] = None,
    registry: Optional[CapabilityRegistry] = None
) -> OrchestrationEngine:
    """
    Engine over the given registry, or over a new default registry.

    Example:
        >>> engine = create_engine(load_config('configs/global_config.yaml'))
        >>> engine.registry.list_names()
        ['EvidenceChainAgent', 'ExportAgent', 'GeoClusteringAgent', 'MetadataExtractionAgent']
    """
    if registry is None:
        registry = create_default_registry(config)
    return OrchestrationEngine(registry, config)
