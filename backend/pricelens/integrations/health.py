"""Per-adapter health tracking.

Health is advisory: it never blocks calls. Callers may choose to skip
adapters that are ``down``.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

# Consecutive failures at which an adapter is reported down
DOWN_THRESHOLD = 5


class HealthStatus(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


@dataclass(frozen=True)
class AdapterHealth:
    """Snapshot of an adapter's recent success/failure streak."""

    status: HealthStatus = HealthStatus.UNKNOWN
    consecutive_failures: int = 0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    error_message: Optional[str] = None
    checked_at: Optional[datetime] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthTracker:
    """Mutable health state owned by exactly one adapter.

    Transitions:
        any success            -> healthy, counter reset to 0
        1-4 consecutive fails  -> degraded
        5+ consecutive fails   -> down
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._state = AdapterHealth()

    @property
    def status(self) -> HealthStatus:
        return self._state.status

    def record_success(self) -> None:
        now = self._clock()
        self._state = replace(
            self._state,
            status=HealthStatus.HEALTHY,
            consecutive_failures=0,
            last_success=now,
            error_message=None,
            checked_at=now,
        )

    def record_failure(self, error: BaseException) -> None:
        now = self._clock()
        failures = self._state.consecutive_failures + 1
        status = HealthStatus.DOWN if failures >= DOWN_THRESHOLD else HealthStatus.DEGRADED
        self._state = replace(
            self._state,
            status=status,
            consecutive_failures=failures,
            last_failure=now,
            error_message=str(error),
            checked_at=now,
        )

    def snapshot(self) -> AdapterHealth:
        """Current state stamped with the read time."""
        return replace(self._state, checked_at=self._clock())
