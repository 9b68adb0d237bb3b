"""
Simulated remote service.

The store awaits one round trip per operation. This is the seam where a
real network client would go; the simulation gives it latency and
failure modes so callers exercise their rollback paths.
"""
import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .errors import TransientError

logger = logging.getLogger(__name__)


@dataclass
class BackendCall:
    """One round trip, as recorded in the call ledger."""
    operation: str
    entity_id: Optional[str] = None
    failed: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class SimulatedBackend:
    """In-process stand-in for the remote project/task service."""

    def __init__(self, latency: float = 0.0, failure_rate: float = 0.0,
                 seed: Optional[int] = None):
        if latency < 0:
            raise ValueError(f"latency must be >= 0, got {latency}")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.latency = latency
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        self._scheduled: deque = deque()   # operation names (None = any) due to fail
        self.calls: List[BackendCall] = []

    def fail_next(self, operation: Optional[str] = None, times: int = 1) -> None:
        """Make the next `times` matching round trips raise TransientError."""
        for _ in range(times):
            self._scheduled.append(operation)

    def reset_calls(self) -> None:
        self.calls.clear()

    def _take_scheduled_failure(self, operation: str) -> bool:
        for i, scheduled in enumerate(self._scheduled):
            if scheduled is None or scheduled == operation:
                del self._scheduled[i]
                return True
        return False

    async def round_trip(self, operation: str, entity_id: Optional[str] = None) -> None:
        """
        Model one request/response exchange.

        Raises:
            TransientError when a failure was scheduled for this operation
            or the random draw lands under failure_rate.
        """
        call = BackendCall(operation=operation, entity_id=entity_id)
        self.calls.append(call)

        await asyncio.sleep(self.latency)

        failed = self._take_scheduled_failure(operation)
        if not failed and self.failure_rate:
            failed = self._rng.random() < self.failure_rate

        if failed:
            call.failed = True
            logger.warning(f"Simulated I/O failure: {operation} ({entity_id or '-'})")
            raise TransientError(f"Remote call {operation} failed, try again")
