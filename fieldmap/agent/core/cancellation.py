"""
Cooperative cancellation for capability execution.
"""

import threading
from typing import Optional

from fieldmap.errors import FieldMapError


class OperationCancelled(FieldMapError):
    """Raised by a capability that stops because its token was cancelled."""


class CancellationToken:
    """
    Thread-safe cancellation flag.

    A child token is cancelled when it or any ancestor is cancelled, so
    cancelling a workflow token reaches every task token derived from it.
    """

    def __init__(self, parent: Optional['CancellationToken'] = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled("Operation cancelled")

    def child(self) -> 'CancellationToken':
        return CancellationToken(parent=self)
