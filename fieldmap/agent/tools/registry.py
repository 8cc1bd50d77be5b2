"""
Capability registry using Registry pattern.

Maps unique names to capability instances. Registries are explicit objects
passed to the engine; there is no process-wide registry.
"""

from typing import Any, Dict, List, Mapping
import logging
import threading

from fieldmap.agent.tools.base import Capability
from fieldmap.errors import CapabilityNotFoundError, DuplicateCapabilityError

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    Registry of executable capabilities.

    Registration happens at startup and is serialized by a lock. Lookups
    read a dict that is only ever replaced whole, so they need no lock.
    """

    def __init__(self):
        self._capabilities: Mapping[str, Capability] = {}
        self._write_lock = threading.Lock()

    def register(self, capability: Capability) -> Capability:
        """
        Register a capability instance under its name.

        Raises:
            DuplicateCapabilityError: If the name is already registered
            ValueError: If the capability has no name
        """
        name = capability.name
        if not name:
            raise ValueError(f"{type(capability).__name__} has no name")

        with self._write_lock:
            if name in self._capabilities:
                raise DuplicateCapabilityError(f"Capability already registered: {name}")
            updated = dict(self._capabilities)
            updated[name] = capability
            self._capabilities = updated

        logger.info(f"Registered capability: {name}")
        return capability

    def lookup(self, name: str) -> Capability:
        """
        Get a capability by name.

        Raises:
            CapabilityNotFoundError: If no capability has that name
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise CapabilityNotFoundError(
                f"Unknown capability: {name}. "
                f"Available capabilities: {', '.join(self.list_names()) or 'none'}"
            ) from None

    def has(self, name: str) -> bool:
        return name in self._capabilities

    def list_names(self) -> List[str]:
        """List all registered capability names, sorted."""
        return sorted(self._capabilities.keys())

    def get_info(self, name: str) -> Dict[str, Any]:
        """Name, purpose and parameter overview of one capability."""
        return self.lookup(name).get_info()

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return len(self._capabilities)
