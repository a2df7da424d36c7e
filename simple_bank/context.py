"""
Transfer execution context: caller-driven cancellation and deadlines.
"""

import threading
import time
import uuid
from typing import Optional

from .errors import TransferCancelledError


class TransferContext:
    """
    Carries a cancel signal, an optional deadline and a correlation ID
    through a transfer.

    The coordinator calls check() between steps of the atomic unit and the
    store calls it while waiting for row locks; once the unit has committed,
    cancelling has no effect.
    """

    def __init__(self, timeout: Optional[float] = None, correlation_id: Optional[str] = None):
        self._cancelled = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.correlation_id = correlation_id or uuid.uuid4().hex

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise TransferCancelledError if cancelled or past the deadline"""
        if self.cancelled:
            raise TransferCancelledError("transfer cancelled by caller")
        if self.expired:
            raise TransferCancelledError("transfer deadline exceeded")
