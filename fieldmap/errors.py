"""Exception types raised by fieldmap."""


class FieldMapError(Exception):
    """Base class for fieldmap errors."""


class DuplicateCapabilityError(FieldMapError, ValueError):
    """A capability with the same name is already registered."""


class CapabilityNotFoundError(FieldMapError, KeyError):
    """No capability is registered under the requested name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ''


class ExportError(FieldMapError, RuntimeError):
    """Export or archive packaging failed; no partial bundle is produced."""


class ChainIntegrityError(FieldMapError):
    """An evidence record's provenance chain is discontinuous or tampered."""
